"""领域层模型与协议。

包含：
- models: Message / Turn / Location / ExtractionResult / MapRenderState。
- cancellation: 每个 Turn 的取消令牌。
- exceptions: 业务异常类型定义。
"""
