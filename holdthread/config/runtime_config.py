"""Runtime configuration helpers."""
from __future__ import annotations

import os
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel

from holdthread.common.errors import ConfigurationError

PROVIDERS = {"stub", "openai", "azure"}
STORE_BACKENDS = {"memory", "file"}
PHASE_CLASSIFIERS = {"lexical", "tagged"}


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def get_env() -> str:
    return _get_env("ENV") or _get_env("APP_ENV") or "dev"


def get_log_level() -> str:
    return (_get_env("LOG_LEVEL") or "INFO").upper()


def get_llm_provider() -> str:
    provider = (_get_env("LLM_PROVIDER") or "stub").lower()
    if provider not in PROVIDERS:
        raise ConfigurationError(f"LLM_PROVIDER must be one of {sorted(PROVIDERS)}. Got: '{provider}'")
    return provider


def get_store_backend() -> str:
    backend = (_get_env("STORE_BACKEND") or "memory").lower()
    if backend not in STORE_BACKENDS:
        raise ConfigurationError(f"STORE_BACKEND must be one of {sorted(STORE_BACKENDS)}. Got: '{backend}'")
    return backend


def get_store_dir() -> Optional[str]:
    return _get_env("STORE_DIR")


def get_phase_classifier() -> str:
    name = (_get_env("PHASE_CLASSIFIER") or "lexical").lower()
    if name not in PHASE_CLASSIFIERS:
        raise ConfigurationError(f"PHASE_CLASSIFIER must be one of {sorted(PHASE_CLASSIFIERS)}. Got: '{name}'")
    return name


def get_digression_summary_messages() -> int:
    return _get_int("DIGRESSION_SUMMARY_MESSAGES", 6)


def get_digression_summary_chars() -> int:
    return _get_int("DIGRESSION_SUMMARY_CHARS", 100)


class GenerationSettings(BaseModel):
    temperature: float
    max_tokens: int


def get_reasoning_generation() -> GenerationSettings:
    return GenerationSettings(
        temperature=_get_float("REASONING_TEMPERATURE", 1.0),
        max_tokens=_get_int("REASONING_MAX_TOKENS", 2000),
    )


def get_digression_generation() -> GenerationSettings:
    return GenerationSettings(
        temperature=_get_float("DIGRESSION_TEMPERATURE", 0.7),
        max_tokens=_get_int("DIGRESSION_MAX_TOKENS", 500),
    )


class OpenAISettings(BaseModel):
    """api.openai.com (or compatible) settings; separate models for reasoning vs digression."""

    api_key: str = ""
    reasoning_model: str = ""
    digression_model: str = ""
    base_url: Optional[str] = None

    def validate_required(self) -> "OpenAISettings":
        if not self.api_key.strip():
            raise ConfigurationError("OpenAI API key is required")
        if not self.reasoning_model.strip():
            raise ConfigurationError("Reasoning model name is required")
        if not self.digression_model.strip():
            raise ConfigurationError("Digression model name is required")
        if self.base_url and not _is_absolute_url(self.base_url):
            raise ConfigurationError("OpenAI base URL must be a valid URL")
        return self


class AzureOpenAISettings(BaseModel):
    """Azure OpenAI settings; reasoning and digression are separate deployments."""

    endpoint: str = ""
    api_key: str = ""
    api_version: str = "2024-10-21"
    reasoning_deployment: str = ""
    digression_deployment: str = ""

    def validate_required(self) -> "AzureOpenAISettings":
        if not self.endpoint.strip():
            raise ConfigurationError("Azure OpenAI endpoint is required")
        if not self.reasoning_deployment.strip():
            raise ConfigurationError("Reasoning deployment name is required")
        if not self.digression_deployment.strip():
            raise ConfigurationError("Digression deployment name is required")
        if not self.api_key.strip():
            raise ConfigurationError("Azure OpenAI API key is required")
        if not _is_absolute_url(self.endpoint):
            raise ConfigurationError("Azure OpenAI endpoint must be a valid URL")
        return self


def get_openai_settings() -> OpenAISettings:
    return OpenAISettings(
        api_key=_get_env("OPENAI_API_KEY") or "",
        reasoning_model=_get_env("REASONING_MODEL") or "o3-mini",
        digression_model=_get_env("DIGRESSION_MODEL") or "gpt-4o-mini",
        base_url=_get_env("OPENAI_BASE_URL") or None,
    )


def get_azure_openai_settings() -> AzureOpenAISettings:
    return AzureOpenAISettings(
        endpoint=_get_env("AZURE_OPENAI_ENDPOINT") or "",
        api_key=_get_env("AZURE_OPENAI_API_KEY") or "",
        api_version=_get_env("AZURE_OPENAI_API_VERSION") or "2024-10-21",
        reasoning_deployment=_get_env("AZURE_OPENAI_REASONING_DEPLOYMENT") or "",
        digression_deployment=_get_env("AZURE_OPENAI_DIGRESSION_DEPLOYMENT") or "",
    )
