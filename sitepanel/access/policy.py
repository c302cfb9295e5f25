"""
Route authorization model shared by the request gate and the zone guards.

Everything here is pure: no I/O, no hidden state. The same inputs always
produce the same Decision, so the gate (first navigation) and the guards
(per-router re-check) can never drift apart.

Decision order for `AccessPolicy.decide(path, authenticated, role)`:
    1. public prefix              -> allow
    2. not authenticated          -> redirect to login (?redirectTo=<path>)
    3. admin zone, not super_admin -> redirect to client home
    4. client zone, super_admin    -> redirect to admin home
       client zone, undefined role -> redirect to fallback path
    5. anything else              -> allow
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable
from urllib.parse import urlencode

from sitepanel.access.config import AccessConfigModel, AccessRules, GateRules
from sitepanel.access.roles import Role


class RouteZone(str, enum.Enum):
    PUBLIC = "public"
    ADMIN = "admin"
    CLIENT = "client"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy check: allow, or redirect to `redirect_to`."""

    allowed: bool
    redirect_to: str | None = None

    @classmethod
    def allow(cls) -> Decision:
        return _ALLOW

    @classmethod
    def redirect(cls, target: str) -> Decision:
        return cls(allowed=False, redirect_to=target)


_ALLOW = Decision(allowed=True)


def normalize_path(path: str) -> str:
    """Strip trailing slashes; the root stays "/"."""
    return path.rstrip("/") or "/"


def _normalize_prefixes(prefixes: Iterable[str]) -> tuple[str, ...]:
    return tuple(normalize_path(p) for p in prefixes)


class AccessPolicy:
    """
    Immutable runtime helper around validated AccessRules.

    Usage:
        policy = AccessPolicy.from_config(load_access_config(Path("config/access_policy.yaml")))
        policy.decide("/admin/sites", authenticated=True, role=Role.CLIENT)
        # Decision(allowed=False, redirect_to="/dashboard")
    """

    def __init__(self, rules: AccessRules, gate: GateRules | None = None):
        self.rules = rules
        self._public_prefixes = _normalize_prefixes(rules.public_prefixes)
        self._admin_prefix = normalize_path(rules.admin_prefix)
        self._client_prefix = normalize_path(rules.client_prefix)
        self._homes: dict[Role, str] = {
            Role.SUPER_ADMIN: rules.admin_home,
            Role.CLIENT: rules.client_home,
        }
        self._excluded = tuple(re.compile(p) for p in (gate or GateRules()).exclude)

    @classmethod
    def from_config(cls, model: AccessConfigModel) -> AccessPolicy:
        return cls(model.access, model.gate)

    # ---- Classification -------------------------------------------------------------

    def is_public(self, path: str) -> bool:
        normalized = normalize_path(path)
        return any(normalized.startswith(prefix) for prefix in self._public_prefixes)

    def classify(self, path: str) -> RouteZone:
        normalized = normalize_path(path)
        if self.is_public(normalized):
            return RouteZone.PUBLIC
        if normalized.startswith(self._admin_prefix):
            return RouteZone.ADMIN
        if normalized.startswith(self._client_prefix):
            return RouteZone.CLIENT
        return RouteZone.NEUTRAL

    def is_excluded(self, path: str) -> bool:
        """Static assets and framework internals skip the gate entirely."""
        return any(regex.search(path) for regex in self._excluded)

    # ---- Targets ----------------------------------------------------------------------

    def home_for(self, role: Role | str | None) -> str:
        role = Role.coerce(role)
        if role is None:
            return self.rules.fallback_path
        return self._homes[role]

    def login_redirect(self, path: str) -> str:
        query = urlencode({"redirectTo": path}, safe="/")
        return f"{self.rules.login_path}?{query}"

    # ---- Decisions --------------------------------------------------------------------

    def zone_decision(self, zone: RouteZone, role: Role | str | None) -> Decision:
        """
        Wrong-zone-for-role check, shared by the gate and the guards.

        Assumes an authenticated identity.
        """

        role = Role.coerce(role)

        if zone is RouteZone.ADMIN and role is not Role.SUPER_ADMIN:
            return Decision.redirect(self.rules.client_home)

        if zone is RouteZone.CLIENT:
            if role is Role.SUPER_ADMIN:
                return Decision.redirect(self.rules.admin_home)
            if role is None:
                return Decision.redirect(self.rules.fallback_path)

        return _ALLOW

    def decide(self, path: str, authenticated: bool, role: Role | str | None = None) -> Decision:
        zone = self.classify(path)

        if zone is RouteZone.PUBLIC:
            return _ALLOW

        if not authenticated:
            return Decision.redirect(self.login_redirect(path))

        return self.zone_decision(zone, role)


@lru_cache
def default_policy() -> AccessPolicy:
    """Policy built from the built-in defaults (no YAML)."""
    return AccessPolicy.from_config(AccessConfigModel())


def decide(path: str, authenticated: bool, role: Role | str | None = None) -> Decision:
    """Module-level convenience over `default_policy().decide`."""
    return default_policy().decide(path, authenticated, role)
