"""模型端点配置（ModelEndpointConfig）。

每个 Provider 一个固定 schema 的变体，通过 provider 字段区分：

- openai / siliconflow: 缺省 base_url 与 model 来自 registry。
- custom: base_url 与 model 必须显式给出。

配置在边界处一次性校验，任何字段缺失都会在发起网络请求前抛出 ConfigError。
核心流水线从不持久化该配置。
"""

from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from chatmap_core.config.settings import Settings, settings as default_settings
from chatmap_core.domain.exceptions import ConfigError
from chatmap_core.providers.registry import PROVIDER_REGISTRY, get_provider_config

_CHAT_COMPLETIONS_SUFFIX = "/chat/completions"


def normalize_base_url(base_url: str) -> str:
    """去掉末尾斜杠以及误填的 /chat/completions 路径。"""

    url = base_url.strip().rstrip("/")
    if url.endswith(_CHAT_COMPLETIONS_SUFFIX):
        url = url[: -len(_CHAT_COMPLETIONS_SUFFIX)].rstrip("/")
    return url


class _EndpointBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: str = Field(min_length=1)
    model: str = Field(min_length=1)
    api_key: str = Field(min_length=1, repr=False)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)

    @field_validator("base_url", "model", "api_key", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("base_url")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        url = normalize_base_url(v)
        if not url.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return url

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_url}{_CHAT_COMPLETIONS_SUFFIX}"


class OpenAIEndpoint(_EndpointBase):
    provider: Literal["openai"] = "openai"


class SiliconFlowEndpoint(_EndpointBase):
    provider: Literal["siliconflow"] = "siliconflow"


class CustomEndpoint(_EndpointBase):
    provider: Literal["custom"] = "custom"


ModelEndpointConfig = Annotated[
    Union[OpenAIEndpoint, SiliconFlowEndpoint, CustomEndpoint],
    Field(discriminator="provider"),
]

_ADAPTER: TypeAdapter = TypeAdapter(ModelEndpointConfig)


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in PROVIDER_REGISTRY)
        parts.append(f"{loc or 'config'}: {err.get('msg')}")
    return "; ".join(parts)


def parse_endpoint_config(data: Mapping[str, Any]) -> ModelEndpointConfig:
    """校验外部传入的原始配置，返回对应的端点变体。

    provider 缺省为 openai；base_url / model 缺失时使用 registry 的默认值。

    Raises:
        ConfigError: provider 未知或任一必填字段缺失/非法。
    """

    raw = {k: v for k, v in dict(data).items() if v is not None and v != ""}
    provider = str(raw.get("provider") or "openai").strip().lower()
    raw["provider"] = provider
    try:
        defaults = get_provider_config(provider)
    except KeyError:
        raise ConfigError(
            code="UNKNOWN_PROVIDER",
            message=f"未知的模型提供商: {provider}",
            provider=provider,
        )
    if defaults.base_url:
        raw.setdefault("base_url", defaults.base_url)
    if defaults.default_model:
        raw.setdefault("model", defaults.default_model)
    try:
        return _ADAPTER.validate_python(raw)
    except PydanticValidationError as exc:
        raise ConfigError(
            code="INVALID_MODEL_CONFIG",
            message=f"模型配置不完整或无效。请检查 API 密钥、BaseURL 和模型名称（{_describe(exc)}）",
            provider=provider,
        )


def endpoint_from_settings(
    cfg: Optional[Settings] = None,
    provider: Optional[str] = None,
) -> ModelEndpointConfig:
    """从全局配置构造当前 Provider 的端点配置。"""

    cfg = cfg or default_settings
    name = (provider or cfg.default_provider).lower()
    data = {"provider": name, "temperature": cfg.temperature}
    if name in PROVIDER_REGISTRY:
        data.update(cfg.provider_fields(name))
    return parse_endpoint_config(data)
