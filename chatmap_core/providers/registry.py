"""Provider 默认配置。

所有 Provider 都走 OpenAI 兼容的 chat/completions 接口，差异只在默认
base_url 与默认模型；custom 没有默认值，必须由用户完整填写。"""

from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    display_name: str
    base_url: Optional[str]
    default_model: Optional[str]


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    display_name="OpenAI",
    base_url="https://api.openai.com/v1",
    default_model="gpt-4o",
)

SILICONFLOW_CONFIG = ProviderConfig(
    name="siliconflow",
    display_name="SiliconFlow",
    base_url="https://api.siliconflow.cn/v1",
    default_model="Qwen/Qwen2.5-7B-Instruct",
)

CUSTOM_CONFIG = ProviderConfig(
    name="custom",
    display_name="自定义提供商",
    base_url=None,
    default_model=None,
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "siliconflow": SILICONFLOW_CONFIG,
    "custom": CUSTOM_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
