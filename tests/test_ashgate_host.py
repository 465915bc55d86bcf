"""
ASHGATE Host Test Suite

Tests for the atomic execution host:
- Deployment and deterministic addressing
- Call frames and sender propagation
- All-or-nothing transactions (state and events)
- Call surface restrictions and depth limits
- Lock serialization and correlation ids

Run with: pytest tests/test_ashgate_host.py -v

Copyright (c) 2026 Momentum. All rights reserved.
"""

import threading
from dataclasses import dataclass

import pytest

from tools.ashgate.events import Event
from tools.ashgate.host import (
    CallDepthExceeded,
    Contract,
    Host,
    HostBusyError,
    HostError,
    NoContractError,
    UnknownFunctionError,
)
from tools.ashgate.hardening import ValidationError


@dataclass
class Bumped(Event):
    by: int = 0


class Counter(Contract):
    """Minimal contract used to exercise the host."""

    def __init__(self, host, start=0):
        super().__init__(host)
        if start < 0:
            raise ValueError("start must be non-negative")
        self.value = start
        self.history = []

    def increment(self, by=1):
        self.value += by
        self.history.append(by)
        self.emit(Bumped(by=by))
        return self.value

    def increment_then_fail(self, by):
        self.increment(by)
        raise RuntimeError("boom")

    def forward(self, other, by):
        return self.host.call(other, "increment", by)

    def forward_then_fail(self, other, by):
        self.host.call(other, "increment", by)
        raise RuntimeError("late failure")

    def recurse(self, depth):
        if depth:
            self.host.call(self.address, "recurse", depth - 1)

    def whoami(self):
        return self.msg_sender

    def nested_transaction(self, other):
        self.host.transact(self.address, other, "increment", 1)

    def _internal(self):
        return "hidden"


# =============================================================================
# DEPLOYMENT
# =============================================================================

class TestDeployment:
    """Contract deployment and addressing."""

    def test_accounts_are_deterministic(self, host):
        """Same label, same address; labels are remembered."""
        first = host.create_account("alice")
        second = host.create_account("alice")
        assert first == second
        assert first.startswith("0x") and len(first) == 42
        assert host.label(first) == "alice"

    def test_deploy_registers_contract(self, host, admin):
        """A deployed contract is reachable at its address."""
        counter = host.deploy(admin, Counter, 5)
        assert host.is_contract(counter.address)
        assert host.contract_at(counter.address) is counter
        assert counter.value == 5

    def test_deploy_addresses_are_unique(self, host, admin):
        """Successive deployments by the same deployer get distinct addresses."""
        a = host.deploy(admin, Counter)
        b = host.deploy(admin, Counter)
        assert a.address != b.address

    def test_failed_constructor_leaves_no_trace(self, host, admin):
        """A raising constructor registers nothing and commits no events."""
        before = set(host._contracts)
        with pytest.raises(ValueError):
            host.deploy(admin, Counter, -1)
        assert set(host._contracts) == before
        assert host.event_store.total_events == 0

    def test_invalid_deployer_rejected(self, host):
        """Deployers must be well-formed addresses."""
        with pytest.raises(ValidationError):
            host.deploy("not-an-address", Counter)

    def test_unknown_address(self, host, admin):
        """Transactions to an empty address fail."""
        with pytest.raises(NoContractError):
            host.transact(admin, "0x" + "ab" * 20, "increment")


# =============================================================================
# FRAMES
# =============================================================================

class TestCallFrames:
    """Sender propagation through nested calls."""

    def test_transaction_sender(self, host, admin):
        """Top-level msg_sender is the transacting account."""
        counter = host.deploy(admin, Counter)
        assert host.transact(admin, counter.address, "whoami") == admin

    def test_nested_call_sender_is_caller_contract(self, host, admin):
        """A nested call sees the calling contract as msg_sender."""
        a = host.deploy(admin, Counter)
        b = host.deploy(admin, Counter)
        assert host.transact(admin, a.address, "forward", b.address, 2) == 2
        assert b.value == 2

    def test_frames_cleared_after_transaction(self, host, admin):
        """No frame survives a finished transaction."""
        counter = host.deploy(admin, Counter)
        host.transact(admin, counter.address, "increment")
        assert not host.in_transaction
        assert host.call_depth == 0
        with pytest.raises(HostError):
            host.msg_sender

    def test_call_outside_transaction_rejected(self, host, admin):
        """Host.call needs an executing contract."""
        counter = host.deploy(admin, Counter)
        with pytest.raises(HostError):
            host.call(counter.address, "increment")


# =============================================================================
# ATOMICITY
# =============================================================================

class TestAtomicity:
    """All-or-nothing transactions."""

    def test_failure_restores_state(self, host, admin):
        """State written before a failure is rolled back."""
        counter = host.deploy(admin, Counter, 1)
        with pytest.raises(RuntimeError):
            host.transact(admin, counter.address, "increment_then_fail", 10)
        assert counter.value == 1
        assert counter.history == []

    def test_failure_restores_every_contract(self, host, admin):
        """A late failure also rolls back nested calls into other contracts."""
        a = host.deploy(admin, Counter)
        b = host.deploy(admin, Counter)
        with pytest.raises(RuntimeError):
            host.transact(admin, a.address, "forward_then_fail", b.address, 3)
        assert b.value == 0

    def test_failure_drops_events(self, host, admin):
        """Events raised by a failed transaction are never committed."""
        counter = host.deploy(admin, Counter)
        with pytest.raises(RuntimeError):
            host.transact(admin, counter.address, "increment_then_fail", 1)
        assert host.logs(Bumped) == []

    def test_success_commits_events_in_order(self, host, admin):
        """Committed events carry the emitter and keep emission order."""
        a = host.deploy(admin, Counter)
        b = host.deploy(admin, Counter)
        host.transact(admin, a.address, "increment", 1)
        host.transact(admin, a.address, "forward", b.address, 2)

        events = host.logs(Bumped)
        assert [e.by for e in events] == [1, 2]
        assert events[0].emitter == a.address
        assert events[1].emitter == b.address
        assert host.logs(Bumped, emitter=b.address) == [events[1]]

    def test_state_usable_after_rollback(self, host, admin):
        """The same contract object keeps working after a rollback."""
        counter = host.deploy(admin, Counter)
        with pytest.raises(RuntimeError):
            host.transact(admin, counter.address, "increment_then_fail", 5)
        assert host.transact(admin, counter.address, "increment", 2) == 2

    def test_nested_transaction_rejected(self, host, admin):
        """Contracts must use Host.call, never Host.transact."""
        a = host.deploy(admin, Counter)
        b = host.deploy(admin, Counter)
        with pytest.raises(HostError):
            host.transact(admin, a.address, "nested_transaction", b.address)
        assert b.value == 0


# =============================================================================
# CALL SURFACE
# =============================================================================

class TestCallSurface:
    """Which functions a caller may reach."""

    def test_private_method_rejected(self, host, admin):
        counter = host.deploy(admin, Counter)
        with pytest.raises(UnknownFunctionError):
            host.transact(admin, counter.address, "_internal")

    def test_missing_method_rejected(self, host, admin):
        counter = host.deploy(admin, Counter)
        with pytest.raises(UnknownFunctionError):
            host.transact(admin, counter.address, "decrement")

    def test_attribute_is_not_callable(self, host, admin):
        counter = host.deploy(admin, Counter)
        with pytest.raises(UnknownFunctionError):
            host.transact(admin, counter.address, "value")

    def test_emit_is_not_externally_callable(self, host, admin):
        """Nobody can forge events through a contract's emit plumbing."""
        counter = host.deploy(admin, Counter)
        with pytest.raises(UnknownFunctionError):
            host.transact(admin, counter.address, "emit", Bumped(by=99))
        assert host.logs(Bumped) == []

    def test_call_depth_limit(self, config_manager, admin):
        """Recursion beyond the configured depth fails the transaction."""
        config_manager.set("host.max_call_depth", 8)
        host = Host()
        counter = host.deploy(admin, Counter)

        host.transact(admin, counter.address, "recurse", 6)
        with pytest.raises(CallDepthExceeded):
            host.transact(admin, counter.address, "recurse", 20)


# =============================================================================
# SERIALIZATION AND OBSERVABILITY
# =============================================================================

class TestSerialization:
    """Host lock, correlation ids and bus delivery."""

    def test_busy_host_times_out(self, config_manager, admin):
        """A transaction waiting too long for the lock fails with HostBusyError."""
        config_manager.set("host.lock_timeout_seconds", 0.05)
        host = Host()
        counter = host.deploy(admin, Counter)

        held = threading.Event()
        release = threading.Event()

        def hold_lock():
            with host._lock:
                held.set()
                release.wait(5)

        worker = threading.Thread(target=hold_lock)
        worker.start()
        try:
            held.wait(5)
            with pytest.raises(HostBusyError):
                host.transact(admin, counter.address, "increment")
        finally:
            release.set()
            worker.join()
        assert counter.value == 0

    def test_concurrent_transactions_serialize(self, host, admin):
        """Concurrent increments never lose updates."""
        counter = host.deploy(admin, Counter)

        def bump():
            for _ in range(25):
                host.transact(admin, counter.address, "increment")

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert counter.value == 100

    def test_correlation_id_per_transaction(self, host, admin):
        """Events of one transaction share a correlation id."""
        a = host.deploy(admin, Counter)
        b = host.deploy(admin, Counter)
        host.transact(admin, a.address, "forward", b.address, 1)
        host.transact(admin, a.address, "increment", 1)

        first, second = host.logs(Bumped)
        assert first.correlation_id and second.correlation_id
        assert first.correlation_id != second.correlation_id

    def test_bus_sees_only_committed_events(self, host, admin):
        """Subscribers are notified after commit, never for rolled-back work."""
        counter = host.deploy(admin, Counter)
        seen = []

        @host.event_bus.subscribe(Bumped)
        def on_bump(event):
            seen.append(event.by)

        with pytest.raises(RuntimeError):
            host.transact(admin, counter.address, "increment_then_fail", 7)
        host.transact(admin, counter.address, "increment", 3)
        assert seen == [3]

    def test_failing_subscriber_does_not_revert(self, host, admin):
        """A broken subscriber is isolated from the transaction."""
        counter = host.deploy(admin, Counter)
        errors = []
        host.event_bus._on_error = errors.append

        @host.event_bus.subscribe(Bumped)
        def broken(event):
            raise RuntimeError("subscriber bug")

        host.transact(admin, counter.address, "increment", 1)
        assert counter.value == 1
        assert len(errors) == 1
        assert host.event_bus.metrics["error_count"] == 1
