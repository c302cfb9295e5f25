from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


class AccessConfigError(ValueError):
    """Raised when the access policy YAML is invalid."""


def _require_absolute(value: str) -> str:
    value = value.strip()
    if not value.startswith("/"):
        raise ValueError(f"path must start with '/': {value!r}")
    return value


class AccessRules(BaseModel):
    login_path: str = "/login"
    public_prefixes: list[str] = Field(default_factory=lambda: ["/login", "/signup", "/auth/callback"])

    admin_prefix: str = "/admin"
    client_prefix: str = "/dashboard"
    admin_home: str = "/admin/dashboard"
    client_home: str = "/dashboard"

    fallback_path: str = "/"

    @field_validator("login_path", "admin_prefix", "client_prefix", "admin_home", "client_home", "fallback_path")
    @classmethod
    def _absolute(cls, value: str) -> str:
        return _require_absolute(value)

    @field_validator("public_prefixes")
    @classmethod
    def _absolute_prefixes(cls, values: list[str]) -> list[str]:
        return [_require_absolute(v) for v in values]

    @model_validator(mode="after")
    def _login_is_public(self) -> AccessRules:
        # Otherwise unauthenticated users bounce between the gate and the login page forever.
        if not any(self.login_path.startswith(p.rstrip("/") or "/") for p in self.public_prefixes):
            raise ValueError(f"login_path {self.login_path!r} must be covered by public_prefixes")
        return self


class GateRules(BaseModel):
    exclude: list[str] = Field(
        default_factory=lambda: [
            r"^/static/",
            r"^/favicon\.ico$",
            r"\.(?:svg|png|jpg|jpeg|gif|webp)$",
            r"^/health$",
        ]
    )

    @field_validator("exclude")
    @classmethod
    def _compiles(cls, values: list[str]) -> list[str]:
        for pattern in values:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid exclude pattern {pattern!r}: {exc}") from exc
        return values


class AccessConfigModel(BaseModel):
    access: AccessRules = Field(default_factory=AccessRules)
    gate: GateRules = Field(default_factory=GateRules)


def load_access_config(path: Path) -> AccessConfigModel:
    """
    Load and validate the access policy YAML.

    Expected shape (every key optional, defaults shown in AccessRules/GateRules):

        access:
          login_path: /login
          public_prefixes: [/login, /signup, /auth/callback]
          admin_prefix: /admin
          client_prefix: /dashboard
          admin_home: /admin/dashboard
          client_home: /dashboard
          fallback_path: /
        gate:
          exclude: ['^/static/', ...]
    """

    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if not isinstance(raw, dict):
        raise AccessConfigError(f"Access policy must be a mapping: {path}")
    if "access" not in raw:
        raise AccessConfigError(f"Missing top-level 'access' key in config: {path}")

    try:
        return AccessConfigModel.model_validate(raw)
    except ValidationError as exc:
        raise AccessConfigError(f"Invalid access policy {path}: {exc}") from exc
