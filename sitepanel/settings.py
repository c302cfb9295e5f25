from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Every field can be overridden with a `SITEPANEL_*` environment variable.
    - Identity provider credentials live in `sitepanel.identity.config` (IDP_* env vars).
    """

    model_config = SettingsConfigDict(env_prefix="SITEPANEL_", extra="ignore")

    db_url: str | None = None
    access_policy_path: str | None = None
    log_level: str = "INFO"

    access_cookie_name: str = "sp-access-token"
    refresh_cookie_name: str = "sp-refresh-token"
    cookie_secure: bool = False

    session_lookup_timeout_seconds: float = 5.0
    session_refresh_margin_seconds: int = 60
    refresh_cookie_max_age_seconds: int = 60 * 60 * 24 * 30

    # Optional first super_admin (identity id issued by the provider).
    bootstrap_admin_id: str | None = None
    bootstrap_admin_email: str | None = None

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "sitepanel.db"
        return f"sqlite:///{db_path}"

    def resolved_access_policy_path(self) -> Path:
        if self.access_policy_path:
            return Path(self.access_policy_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "access_policy.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
