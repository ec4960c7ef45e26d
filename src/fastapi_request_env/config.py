"""Deployment settings loaded from the process environment and ``.env``."""

from __future__ import annotations

import os
from typing import Any

from dotenv import dotenv_values
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from fastapi_request_env.exceptions import ConfigurationFault

SESSION_TTL_SECONDS = 60 * 60 * 24 * 7


def env_field(default: Any, env: str, **kwargs: Any) -> Any:
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Secrets and tunables supplied by the hosting runtime."""

    jwt_secret: SecretStr = env_field(..., "JWT_SECRET")
    vapid_public_key: str = env_field(..., "VAPID_PUBLIC_KEY")
    payment_secret: SecretStr = env_field(..., "PAYSTACK_SECRET")
    bootstrap_secret: SecretStr | None = env_field(None, "BOOTSTRAP_SECRET")

    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def env_names(cls) -> dict[str, str]:
        names: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            names[name] = str(env_key or name.upper())
        return names

    @classmethod
    def from_env(cls, env_file: str | None = ".env") -> Settings:
        env_file_values = dotenv_values(env_file) if env_file else {}
        merged: dict[str, Any] = {}
        for name, env_name in cls.env_names().items():
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_file_values.get(env_name) is not None:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @classmethod
    def load(cls, env_file: str | None = ".env") -> Settings:
        """Like :meth:`from_env`, but reports problems as a ``ConfigurationFault``."""
        try:
            return cls.from_env(env_file)
        except ValidationError as exc:
            env_names = cls.env_names()
            missing = sorted(
                {
                    env_names.get(str(error["loc"][0]), str(error["loc"][0]))
                    for error in exc.errors()
                    if error["loc"]
                }
            )
            # pydantic errors echo the offending input values
            raise ConfigurationFault(missing) from None

    @field_validator("jwt_secret", "payment_secret")
    @classmethod
    def _require_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("vapid_public_key")
    @classmethod
    def _require_public_key(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("bootstrap_secret")
    @classmethod
    def _blank_bootstrap_is_absent(cls, value: SecretStr | None) -> SecretStr | None:
        if value is None or not value.get_secret_value().strip():
            return None
        return value
