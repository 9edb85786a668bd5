"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取 system prompt 文本：

- answer: 流式回答阶段（ChatStream）使用。
- extract: 地理信息提取阶段（ChatExtract）使用。
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal


PROMPTS_DIR = Path(__file__).resolve().parent

PromptKind = Literal["answer", "extract"]

# 首页推荐问题：(问题, 分类)
SUGGESTED_QUERIES = (
    ("法国普罗旺斯薰衣草花田最佳观赏路线", "nature"),
    ("北京胡同深度一日游路线", "culture"),
    ("撒哈拉沙漠最著名的绿洲城市", "travel"),
    ("西西里岛最地道的传统美食餐厅", "food"),
    ("东京奥运会场馆位置和交通指南", "sports"),
    ("新西兰南岛自驾十日游路线规划", "travel"),
    ("里约热内卢狂欢节最佳观赏地点", "culture"),
    ("印度金三角旅游路线及景点推荐", "history"),
    ("北欧四国夏季极光观测点", "nature"),
    ("马达加斯加特有物种分布地图", "science"),
    ("伊斯坦布尔跨欧亚两洲一日游", "travel"),
    ("澳大利亚大堡礁最佳潜水地点", "adventure"),
)


@lru_cache(maxsize=None)
def load_system_prompt(kind: PromptKind, locale: str = "zh") -> str:
    """根据阶段和语言加载系统提示词文本。"""

    fname = PROMPTS_DIR / locale / f"{kind}_system.md"
    return fname.read_text(encoding="utf-8")
