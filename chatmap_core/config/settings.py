"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHATMAP_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="openai",
        description="默认使用的 Provider 名称，例如 openai、siliconflow、custom",
    )

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: Optional[str] = Field(default=None, description="OpenAI API 基础URL，留空使用默认值")
    openai_model: Optional[str] = Field(default=None, description="OpenAI 模型名称，留空使用默认值")
    # SiliconFlow
    siliconflow_api_key: Optional[str] = Field(default=None, description="SiliconFlow API 密钥")
    siliconflow_base_url: Optional[str] = Field(default=None, description="SiliconFlow API 基础URL")
    siliconflow_model: Optional[str] = Field(default=None, description="SiliconFlow 模型名称")
    # 自定义 OpenAI 兼容服务
    custom_api_key: Optional[str] = Field(default=None, description="自定义提供商 API 密钥")
    custom_base_url: Optional[str] = Field(default=None, description="自定义提供商 API 基础URL")
    custom_model: Optional[str] = Field(default=None, description="自定义提供商模型名称")

    temperature: float = Field(default=0.7, ge=0.0, le=1.0, description="生成温度")
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    max_history_messages: int = Field(default=20, ge=1, le=100, description="发送给模型的最大历史消息数")
    strict_location_validation: bool = Field(
        default=False,
        description="为 True 时任一坐标非法即整体拒绝提取结果；否则仅丢弃非法地点",
    )
    storage_root: str = Field(default=".storage", description="存储根目录")
    record_query_history: bool = Field(default=True, description="是否记录最近查询")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("default_provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.strip().upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )

    def provider_fields(self, provider: str) -> Dict[str, Optional[str]]:
        """返回某个 Provider 的 base_url/model/api_key 原始配置。"""

        key = provider.lower()
        return {
            "base_url": getattr(self, f"{key}_base_url", None),
            "model": getattr(self, f"{key}_model", None),
            "api_key": getattr(self, f"{key}_api_key", None),
        }


settings = Settings()
