from __future__ import annotations

from collections.abc import Callable

from sitepanel.access.roles import Role
from sitepanel.identity import Identity
from sitepanel.schemas.accounts import IdentityOut, ProfileOut, SessionOut


Listener = Callable[["SessionState"], None]


class SessionState:
    """
    Reactive "who am I" for one request's page tree: `{identity, profile, loading}`.

    Created per request (never a module-level singleton). Consumers subscribe
    when they mount and call the returned function when they unmount;
    listeners are notified synchronously on every resolve/clear.
    """

    def __init__(self) -> None:
        self.identity: Identity | None = None
        self.profile: ProfileOut | None = None
        self.loading = True
        self._listeners: list[Listener] = []

    @classmethod
    def resolved(cls, identity: Identity | None, profile: ProfileOut | None) -> SessionState:
        state = cls()
        state.resolve(identity, profile)
        return state

    @property
    def role(self) -> Role | None:
        return self.profile.role if self.profile is not None else None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def resolve(self, identity: Identity | None, profile: ProfileOut | None) -> None:
        """Auth state arrived (initial lookup or a later auth-state change)."""
        self.identity = identity
        self.profile = profile if identity is not None else None
        self.loading = False
        self._notify()

    def clear(self) -> None:
        """Signed out."""
        self.resolve(None, None)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def snapshot(self) -> SessionOut:
        return SessionOut(
            identity=IdentityOut.model_validate(self.identity) if self.identity is not None else None,
            profile=self.profile,
            loading=self.loading,
        )
