"""CapabilityEnvironment — the deployment-wide set of bindings and secrets."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from pydantic import SecretStr

from fastapi_request_env.bindings import (
    Database,
    InferenceEngine,
    KeyValueStore,
    VectorIndex,
)
from fastapi_request_env.config import Settings
from fastapi_request_env.exceptions import ConfigurationFault

# attribute name -> binding name as provisioned by the runtime
BINDING_NAMES: dict[str, str] = {
    "ai": "AI",
    "db": "DB",
    "sessions": "SESSIONS",
    "vector_index": "VECTORIZE",
    "jwt_secret": "JWT_SECRET",
    "vapid_public_key": "VAPID_PUBLIC_KEY",
    "payment_secret": "PAYSTACK_SECRET",
    "bootstrap_secret": "BOOTSTRAP_SECRET",
}

OPTIONAL_BINDINGS = frozenset({"bootstrap_secret"})


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, SecretStr):
        return not value.get_secret_value().strip()
    if isinstance(value, str):
        return not value.strip()
    return False


@dataclass(frozen=True)
class CapabilityEnvironment:
    """Immutable handles shared read-only by every request of a deployment.

    Construction validates every required binding and raises
    :class:`ConfigurationFault` listing all that are absent, so a
    misconfigured deployment fails before serving any traffic. Secrets are
    held as ``SecretStr`` and never appear in ``repr()``.
    """

    ai: InferenceEngine
    db: Database
    sessions: KeyValueStore
    vector_index: VectorIndex
    jwt_secret: SecretStr
    vapid_public_key: str
    payment_secret: SecretStr
    bootstrap_secret: SecretStr | None = None

    def __post_init__(self) -> None:
        for name in ("jwt_secret", "payment_secret", "bootstrap_secret"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, SecretStr(value))
        if _is_missing(self.bootstrap_secret):
            object.__setattr__(self, "bootstrap_secret", None)

        missing = [
            BINDING_NAMES[f.name]
            for f in fields(self)
            if f.name not in OPTIONAL_BINDINGS and _is_missing(getattr(self, f.name))
        ]
        if missing:
            raise ConfigurationFault(missing)

    def get(self, name: str) -> Any:
        """Look up a capability by binding name (``"DB"``) or attribute (``"db"``)."""
        if name in BINDING_NAMES:
            return getattr(self, name)
        for attr, binding in BINDING_NAMES.items():
            if binding == name:
                return getattr(self, attr)
        raise KeyError(name)

    @property
    def bootstrap_enabled(self) -> bool:
        return self.bootstrap_secret is not None

    def public_config(self) -> dict[str, str]:
        """Values that are safe to hand to clients."""
        return {"vapid_public_key": self.vapid_public_key}


def build_environment(
    settings: Settings,
    *,
    ai: InferenceEngine,
    db: Database,
    sessions: KeyValueStore,
    vector_index: VectorIndex,
) -> CapabilityEnvironment:
    """Combine loaded settings with the runtime-provided resource handles."""
    return CapabilityEnvironment(
        ai=ai,
        db=db,
        sessions=sessions,
        vector_index=vector_index,
        jwt_secret=settings.jwt_secret,
        vapid_public_key=settings.vapid_public_key,
        payment_secret=settings.payment_secret,
        bootstrap_secret=settings.bootstrap_secret,
    )
