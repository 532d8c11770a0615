from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _require_http_url(v: str) -> str:
    v = str(v or "").strip().rstrip("/")
    if not (v.startswith("http://") or v.startswith("https://")):
        raise ValueError("must be an http(s) URL")
    return v


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    base_url: str = "http://localhost:4000"
    timeout_seconds: float = Field(default=15.0, gt=0, le=120)
    health_timeout_seconds: float = Field(default=5.0, gt=0, le=60)

    @field_validator("base_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        return _require_http_url(v)


class AuthConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    provider_url: str = "http://localhost:54321"
    anon_key: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    session_skew_seconds: int = Field(default=30, ge=0, le=3600)
    redirect_url: str = "movi://auth/callback"
    reset_redirect_url: str = "movi://auth/reset-password"

    @field_validator("provider_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        return _require_http_url(v)


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    device_key_path: str = "secure/device.key"
    secure_store_path: str = "secure/secure_store.enc"
    cache_path: str = "secure/cache.json"


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    log_dir: str = "logs"
    level: str = "INFO"
    audit_path: Optional[str] = "logs/session_events.jsonl"


class PricingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    base_price: float = Field(default=1000.0, ge=0)
    price_per_km: float = Field(default=500.0, ge=0)
    price_per_kg: float = Field(default=200.0, ge=0)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    config_version: int = Field(default=1, ge=1)
    api: ApiConfig = Field(default_factory=ApiConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
