from __future__ import annotations

from typing import Protocol

from certifier.app.events.models import AuthorizationEvent


class AuthorizationEventEmitter(Protocol):
    """
    Sink for run progress events.

    The engine awaits emit() inline, so implementations return promptly
    and swallow their own delivery problems. Events never influence the
    outcome of a run.
    """

    async def emit(self, event: AuthorizationEvent) -> None:
        ...


class NullEventEmitter:
    """Default sink when the caller does not pass one."""

    async def emit(self, event: AuthorizationEvent) -> None:
        pass
