"""
ASHGATE Safety Controls

Administrator role, pause gate and reentrancy guard shared by every engine.
Each control is a cooperative ``Contract`` mixin whose state lives in plain
instance attributes, so the host snapshots and restores it like any other
contract state. Entry points opt in through decorators:

    @when_not_paused     PausedError while paused
    @non_reentrant       ReentrantCallError if the lock is already held
    @only_administrator  NotAdministratorError for anyone but the administrator

The reentrancy lock is one slot per engine instance, not per asset, and is
released on every exit path.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, TypeVar

from tools.ashgate.events import EnginePaused, EngineUnpaused, OwnershipTransferred
from tools.ashgate.hardening import (
    ZERO_ADDRESS,
    NotAdministratorError,
    NotPausedError,
    PausedError,
    ReentrantCallError,
    require_address,
)
from tools.ashgate.host import Contract, Host

F = TypeVar("F", bound=Callable[..., Any])


# =============================================================================
# ADMINISTRATOR
# =============================================================================

class Ownable(Contract):
    """Single administrator, initially the deployer."""

    def __init__(self, host: Host):
        super().__init__(host)
        self.administrator = host.msg_sender
        self.emit(OwnershipTransferred(previous_owner=ZERO_ADDRESS, new_owner=self.administrator))

    def _require_administrator(self) -> None:
        if self.msg_sender != self.administrator:
            raise NotAdministratorError(
                f"{self.msg_sender} is not the administrator",
                caller=self.msg_sender,
            )

    def transfer_ownership(self, new_owner: str) -> None:
        self._require_administrator()
        new_owner = require_address(new_owner, "new_owner")
        previous = self.administrator
        self.administrator = new_owner
        self.emit(OwnershipTransferred(previous_owner=previous, new_owner=new_owner))


def only_administrator(func: F) -> F:
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        self._require_administrator()
        return func(self, *args, **kwargs)
    return wrapper  # type: ignore[return-value]


# =============================================================================
# PAUSE GATE
# =============================================================================

class Pausable(Contract):
    """Two-state Active / Paused flag toggled by the administrator."""

    def __init__(self, host: Host):
        super().__init__(host)
        self.paused = False

    def _require_not_paused(self) -> None:
        if self.paused:
            raise PausedError("Migrations are paused")

    @only_administrator
    def pause(self) -> None:
        self._require_not_paused()
        self.paused = True
        self.emit(EnginePaused(account=self.msg_sender))

    @only_administrator
    def unpause(self) -> None:
        if not self.paused:
            raise NotPausedError("Migrations are not paused")
        self.paused = False
        self.emit(EngineUnpaused(account=self.msg_sender))


def when_not_paused(func: F) -> F:
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        self._require_not_paused()
        return func(self, *args, **kwargs)
    return wrapper  # type: ignore[return-value]


# =============================================================================
# REENTRANCY GUARD
# =============================================================================

class ReentrancyGuard(Contract):
    """Single-slot lock shared by every guarded entry point."""

    def __init__(self, host: Host):
        super().__init__(host)
        self.reentrancy_lock = False

    @contextmanager
    def _guard(self) -> Iterator[None]:
        if self.reentrancy_lock:
            raise ReentrantCallError("Reentrant call rejected")
        self.reentrancy_lock = True
        try:
            yield
        finally:
            self.reentrancy_lock = False


def non_reentrant(func: F) -> F:
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        with self._guard():
            return func(self, *args, **kwargs)
    return wrapper  # type: ignore[return-value]
