"""
Route authorization: roles, zones, and the pure allow/redirect policy.

No dependency on FastAPI or the database; the gate and the guards in
`sitepanel.security` are the only callers that touch requests.
"""

from .config import AccessConfigError, AccessConfigModel, load_access_config
from .policy import AccessPolicy, Decision, RouteZone, decide, default_policy, normalize_path
from .roles import Role, SubscriptionStatus

__all__ = [
    "AccessConfigError",
    "AccessConfigModel",
    "AccessPolicy",
    "Decision",
    "Role",
    "RouteZone",
    "SubscriptionStatus",
    "decide",
    "default_policy",
    "load_access_config",
    "normalize_path",
]
