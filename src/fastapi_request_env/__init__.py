"""FastAPI Request Env - capability environment and write-once request context."""

from fastapi_request_env.bindings import (
    Database,
    InferenceEngine,
    InMemoryKeyValueStore,
    KeyValueStore,
    VectorIndex,
)
from fastapi_request_env.component import (
    Authenticator,
    ComponentCategory,
    FlowComponent,
)
from fastapi_request_env.components.authentication import (
    AllowAnonymous,
    JWTAuthentication,
    SessionAuthentication,
    issue_token,
)
from fastapi_request_env.components.permissions import (
    Authenticated,
    BootstrapSecretRequired,
)
from fastapi_request_env.components.throttling import (
    InMemoryThrottleBackend,
    KeyValueThrottleBackend,
    RateLimit,
    ThrottleBackend,
)
from fastapi_request_env.config import Settings
from fastapi_request_env.context import DepartmentScope, Principal, RequestContext
from fastapi_request_env.dependency import environment_dependency, flow_dependency
from fastapi_request_env.environment import CapabilityEnvironment, build_environment
from fastapi_request_env.exceptions import (
    AuthenticationFailed,
    ConfigurationFault,
    DepartmentScopeViolation,
    FlowAbort,
    FlowException,
    FlowInternalError,
    PermissionDenied,
    Throttled,
)
from fastapi_request_env.flow import Flow
from fastapi_request_env.hooks import (
    AfterComponent,
    AfterFlow,
    AuditLogHook,
    BeforeFlow,
    FlowHook,
)
from fastapi_request_env.lifespan import environment_lifespan, install_environment
from fastapi_request_env.scoping import ScopedDatabase, ScopedVectorIndex
from fastapi_request_env.sessions import SessionStore

__all__ = [
    "AfterComponent",
    "AfterFlow",
    "AllowAnonymous",
    "AuditLogHook",
    "Authenticated",
    "AuthenticationFailed",
    "Authenticator",
    "BeforeFlow",
    "BootstrapSecretRequired",
    "CapabilityEnvironment",
    "ComponentCategory",
    "ConfigurationFault",
    "Database",
    "DepartmentScope",
    "DepartmentScopeViolation",
    "Flow",
    "FlowAbort",
    "FlowComponent",
    "FlowException",
    "FlowHook",
    "FlowInternalError",
    "InMemoryKeyValueStore",
    "InMemoryThrottleBackend",
    "InferenceEngine",
    "JWTAuthentication",
    "KeyValueStore",
    "KeyValueThrottleBackend",
    "PermissionDenied",
    "Principal",
    "RateLimit",
    "RequestContext",
    "ScopedDatabase",
    "ScopedVectorIndex",
    "SessionAuthentication",
    "SessionStore",
    "Settings",
    "ThrottleBackend",
    "Throttled",
    "VectorIndex",
    "build_environment",
    "environment_dependency",
    "environment_lifespan",
    "flow_dependency",
    "install_environment",
    "issue_token",
]
