from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from sitepanel.access.roles import Role, SubscriptionStatus


class IdentityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None


class ProfileOut(BaseModel):
    """Detached profile snapshot; safe to keep after the DB session closes."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None
    role: Role | None
    subscription_status: SubscriptionStatus


class SessionOut(BaseModel):
    identity: IdentityOut | None
    profile: ProfileOut | None
    loading: bool


class LoginIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)
    redirect_to: str | None = None


class SignupIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8)


class AccountSettingsOut(BaseModel):
    email: str | None
    role: Role | None
    subscription_status: SubscriptionStatus


class EmailUpdateIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class PasswordUpdateIn(BaseModel):
    password: str = Field(min_length=8)
    confirm_password: str


class SettingsMessageOut(BaseModel):
    message: str
