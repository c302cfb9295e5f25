from __future__ import annotations

import enum


class Role(str, enum.Enum):
    """Access class of a profile. Closed set: anything else is an undefined role."""

    SUPER_ADMIN = "super_admin"
    CLIENT = "client"

    @classmethod
    def coerce(cls, value: Role | str | None) -> Role | None:
        """Map a stored role value to a Role, or None when absent/unknown."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TRIAL = "trial"
