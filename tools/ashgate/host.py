"""
ASHGATE Atomic Execution Host

The host is the all-or-nothing execution environment every ASHGATE contract
runs inside. Ledgers, the burn sink and migration engines are ``Contract``
objects deployed on a ``Host``; callers drive them through ``transact`` and
contracts reach each other through ``call``.

Execution Model:

    transact(sender, target, method)          one unit of work
         │
         ├── snapshot every contract + host registry
         ├── push frame (sender, this=target)
         │       │
         │       └── call(other, method) ──▶ push frame (sender=this, this=other)
         │                                        ... nested to max_call_depth
         │
         ├── success ──▶ commit buffered events (store, then bus)
         └── failure ──▶ restore snapshot, drop buffered events, re-raise

Transactions are serialized by the host lock into a total order. Nested calls
run on the caller's stack, so a callback that re-enters a contract is visible
to that contract's own guard.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import copy
import hashlib
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, TypeVar

from tools.ashgate.config import get_config
from tools.ashgate.events import Event, EventBus, EventStore
from tools.ashgate.hardening import ZERO_ADDRESS, Validators
from tools.ashgate.observability import (
    AshgateLayer,
    correlation_scope,
    get_logger,
)

logger = get_logger("host", AshgateLayer.HOST)

C = TypeVar("C", bound="Contract")


# =============================================================================
# HOST ERRORS
# =============================================================================

class HostError(Exception):
    """Misuse of the host or a failed host-level call."""
    code = "HostError"


class NoContractError(HostError):
    """Call targeted an address with no deployed contract."""
    code = "NoContract"


class UnknownFunctionError(HostError):
    """Call targeted a function the contract does not expose."""
    code = "UnknownFunction"


class CallDepthExceeded(HostError):
    """Nested calls went deeper than the configured limit."""
    code = "CallDepthExceeded"


class HostBusyError(HostError):
    """Timed out waiting for the host lock."""
    code = "HostBusy"


# =============================================================================
# CONTRACTS AND FRAMES
# =============================================================================

@dataclass(frozen=True)
class CallFrame:
    """One entry of the host call stack."""
    sender: str
    this: str
    method: str
    depth: int


class Contract:
    """
    Base class for everything deployed on a Host.

    All instance attributes except ``host`` are contract state: they are
    snapshotted before each transaction and restored if it fails. Public
    methods (no leading underscore) are callable through the host.
    """

    def __init__(self, host: "Host"):
        self.host = host
        self.address = host.this

    @property
    def msg_sender(self) -> str:
        """Immediate caller of the executing function."""
        return self.host.msg_sender

    def emit(self, event: Event) -> None:
        self.host.emit(event)

    def _snapshot(self, memo: Dict[int, Any]) -> Dict[str, Any]:
        state = {k: v for k, v in vars(self).items() if k != "host"}
        return copy.deepcopy(state, memo)

    def _restore(self, state: Dict[str, Any]) -> None:
        host = self.host
        vars(self).clear()
        vars(self).update(state)
        self.host = host


# Base-class members are host plumbing, never contract functions
_CONTRACT_PLUMBING = frozenset(name for name in vars(Contract) if not name.startswith("_"))


@dataclass
class _Snapshot:
    contracts: Dict[str, Contract]
    nonces: Dict[str, int]
    states: Dict[str, Dict[str, Any]] = field(default_factory=dict)


# =============================================================================
# HOST
# =============================================================================

class Host:
    """
    In-process atomic execution environment.

    Example:
        host = Host()
        admin = host.create_account("admin")
        token = host.deploy(admin, FungibleLedger, "Old", "OLD")
        host.transact(admin, token.address, "mint", admin, 1_000)
    """

    def __init__(self):
        host_config = get_config().host
        self.max_call_depth = host_config.max_call_depth.get()
        self.lock_timeout_seconds = host_config.lock_timeout_seconds.get()

        self.event_store = EventStore()
        self.event_bus = EventBus()

        self._contracts: Dict[str, Contract] = {}
        self._nonces: Dict[str, int] = {}
        self._labels: Dict[str, str] = {}
        self._frames: List[CallFrame] = []
        self._pending: List[Event] = []
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Accounts and addresses
    # -------------------------------------------------------------------------

    def create_account(self, label: str) -> str:
        """Return the externally owned address for ``label``."""
        digest = hashlib.sha256(f"account:{label}".encode()).hexdigest()
        address = "0x" + digest[-40:]
        self._labels[address] = label
        return address

    def label(self, address: str) -> str:
        """Human-readable name of an address, or the address itself."""
        return self._labels.get(address, address)

    def _derive_address(self, deployer: str) -> str:
        nonce = self._nonces.get(deployer, 0)
        self._nonces[deployer] = nonce + 1
        digest = hashlib.sha256(f"contract:{deployer}:{nonce}".encode()).hexdigest()
        return "0x" + digest[-40:]

    def is_contract(self, address: str) -> bool:
        return address in self._contracts

    def contract_at(self, address: str) -> Contract:
        """Look up a deployed contract."""
        contract = self._contracts.get(address)
        if contract is None:
            raise NoContractError(f"No contract at {address}")
        return contract

    # -------------------------------------------------------------------------
    # Call frames
    # -------------------------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return bool(self._frames)

    def _current_frame(self) -> CallFrame:
        if not self._frames:
            raise HostError("No active call frame")
        return self._frames[-1]

    @property
    def msg_sender(self) -> str:
        return self._current_frame().sender

    @property
    def this(self) -> str:
        return self._current_frame().this

    @property
    def call_depth(self) -> int:
        return len(self._frames)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def deploy(self, deployer: str, contract_cls: Type[C], *args: Any, **kwargs: Any) -> C:
        """
        Deploy a contract, running its constructor as a transaction sent by
        ``deployer``. A failing constructor leaves no trace.
        """
        deployer = Validators.validate_address(deployer, "deployer").unwrap()

        def construct() -> C:
            address = self._derive_address(deployer)
            self._frames.append(CallFrame(deployer, address, "__init__", 1))
            try:
                contract = contract_cls(self, *args, **kwargs)
            finally:
                self._frames.pop()
            self._contracts[address] = contract
            return contract

        return self._atomically(construct, deployer, contract_cls.__name__, "__init__")

    def transact(
        self,
        sender: str,
        target: str,
        method: str,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Run ``target.method(*args)`` as one all-or-nothing unit of work."""
        sender = Validators.validate_address(sender, "sender").unwrap()
        return self._atomically(
            lambda: self._invoke(sender, target, method, args, kwargs),
            sender,
            target,
            method,
        )

    def call(self, target: str, method: str, *args: Any, **kwargs: Any) -> Any:
        """Nested call from the executing contract to ``target``."""
        return self._invoke(self.this, target, method, args, kwargs)

    def emit(self, event: Event) -> None:
        """Buffer an event raised by the executing contract."""
        event.emitter = self.this
        self._pending.append(event)

    def logs(
        self,
        event_type: Optional[Type[Event]] = None,
        emitter: Optional[str] = None,
    ) -> List[Event]:
        """Committed events, optionally filtered by type and emitter."""
        events = [record.event for record in self.event_store.read_all()]
        if event_type is not None:
            events = [e for e in events if isinstance(e, event_type)]
        if emitter is not None:
            events = [e for e in events if e.emitter == emitter]
        return events

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _invoke(
        self,
        sender: str,
        target: str,
        method: str,
        args: tuple,
        kwargs: Dict[str, Any],
    ) -> Any:
        contract = self.contract_at(target)
        if method.startswith("_") or method in _CONTRACT_PLUMBING:
            raise UnknownFunctionError(f"{type(contract).__name__} does not expose {method}")
        fn = getattr(contract, method, None)
        if fn is None or not callable(fn):
            raise UnknownFunctionError(f"{type(contract).__name__} does not expose {method}")
        if len(self._frames) >= self.max_call_depth:
            raise CallDepthExceeded(f"Call depth limit {self.max_call_depth} reached")

        self._frames.append(CallFrame(sender, target, method, len(self._frames) + 1))
        try:
            return fn(*args, **kwargs)
        finally:
            self._frames.pop()

    def _atomically(self, work, sender: str, target: str, method: str) -> Any:
        if not self._lock.acquire(timeout=self.lock_timeout_seconds):
            raise HostBusyError(f"Host lock not acquired within {self.lock_timeout_seconds}s")
        try:
            if self._frames:
                raise HostError("Transactions cannot be nested; use Host.call")

            with correlation_scope() as correlation_id:
                start = time.monotonic()
                snapshot = self._snapshot()
                try:
                    result = work()
                except BaseException as exc:
                    self._restore(snapshot)
                    self._pending = []
                    logger.warning(
                        "Transaction reverted",
                        error_code=getattr(exc, "code", type(exc).__name__),
                        sender=sender,
                        target=target,
                        method=method,
                        reason=str(exc),
                    )
                    raise

                events, self._pending = self._pending, []
                self._commit(events, correlation_id)
                logger.debug(
                    "Transaction committed",
                    sender=sender,
                    target=target,
                    method=method,
                    events=len(events),
                    duration_ms=round((time.monotonic() - start) * 1000, 3),
                )
                return result
        finally:
            self._lock.release()

    def _commit(self, events: List[Event], correlation_id: str) -> None:
        for event in events:
            event.correlation_id = correlation_id
            self.event_store.append(event.emitter, [event])
        for event in events:
            self.event_bus.publish(event)

    def _snapshot(self) -> _Snapshot:
        memo: Dict[int, Any] = {id(self): self}
        for contract in self._contracts.values():
            memo[id(contract)] = contract

        snapshot = _Snapshot(contracts=dict(self._contracts), nonces=dict(self._nonces))
        for address, contract in self._contracts.items():
            snapshot.states[address] = contract._snapshot(memo)
        return snapshot

    def _restore(self, snapshot: _Snapshot) -> None:
        self._contracts = dict(snapshot.contracts)
        self._nonces = dict(snapshot.nonces)
        for address, state in snapshot.states.items():
            snapshot.contracts[address]._restore(state)


__all__ = [
    "ZERO_ADDRESS",
    "CallDepthExceeded",
    "CallFrame",
    "Contract",
    "Host",
    "HostBusyError",
    "HostError",
    "NoContractError",
    "UnknownFunctionError",
]
