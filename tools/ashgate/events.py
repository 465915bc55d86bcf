"""
ASHGATE Event Infrastructure

Typed events, an append-only event store and an in-memory event bus. The host
buffers events raised during a transaction and, only when the transaction
commits, appends them to the store (one stream per emitting contract) and
publishes them on the bus. A rolled-back transaction leaves no event behind.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          EVENT INFRASTRUCTURE                            │
    │                                                                          │
    │  Engine Events          Ledger Events          Event Store / Bus         │
    │  ├─ EngineDeployed      ├─ Transfer            ├─ Append-only log        │
    │  ├─ MigrationCompleted  ├─ Approval            ├─ Streams per emitter    │
    │  ├─ EscrowDeposited     ├─ ApprovalForAll      ├─ Typed subscriptions    │
    │  ├─ EscrowWithdrawn     ├─ TransferSingle      └─ Filters / priorities   │
    │  ├─ UnrelatedAsset...   └─ TransferBatch                                 │
    │  ├─ EnginePaused / EngineUnpaused                                        │
    │  └─ OwnershipTransferred                                                 │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Usage
─────

    bus = host.event_bus

    @bus.subscribe(MigrationCompleted)
    def on_migration(event: MigrationCompleted):
        print(f"{event.account} migrated {event.token_id}")

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Set,
    Tuple,
    Type,
)

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════════════
# EVENT BASE
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Event:
    """
    Base class for all events in the system.

    Events are immutable facts representing something that happened.
    ``emitter`` is stamped by the host with the address of the contract
    that raised the event.
    """

    # Metadata fields (auto-populated)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    emitter: str = ""
    correlation_id: Optional[str] = None

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__

    @property
    def timestamp(self) -> datetime:
        """Get timestamp as datetime."""
        return datetime.fromisoformat(self.event_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize event to dictionary."""
        data = asdict(self)
        data["event_type"] = self.event_type
        return data

    def to_json(self) -> str:
        """Serialize event to JSON for display/transport."""
        return json.dumps(self.to_dict(), default=str, sort_keys=True)

    def digest(self) -> str:
        """Deterministic digest of the event payload (metadata excluded)."""
        content = {
            k: v for k, v in self.to_dict().items()
            if k not in ("event_id", "event_timestamp", "correlation_id")
        }
        canonical = json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode()).hexdigest()


# ════════════════════════════════════════════════════════════════════════════
# ENGINE EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class EngineDeployed(Event):
    """Emitted once by an engine's constructor."""
    old_ledger: str = ""
    new_ledger: str = ""
    sink: str = ""
    asset_class: str = ""


@dataclass
class MigrationCompleted(Event):
    """Emitted for every migrated element. ``token_id`` is None for fungible."""
    account: str = ""
    token_id: Optional[int] = None
    amount: int = 0


@dataclass
class EscrowDeposited(Event):
    """Emitted when the administrator pre-funds new assets."""
    account: str = ""
    token_ids: Tuple[int, ...] = ()
    amounts: Tuple[int, ...] = ()


@dataclass
class EscrowWithdrawn(Event):
    """Emitted when the administrator pulls new assets back out of escrow."""
    account: str = ""
    token_ids: Tuple[int, ...] = ()
    amounts: Tuple[int, ...] = ()


@dataclass
class UnrelatedAssetRecovered(Event):
    """Emitted when a stray asset is swept to the administrator."""
    token: str = ""
    account: str = ""
    token_id: Optional[int] = None
    amount: int = 0


@dataclass
class EnginePaused(Event):
    account: str = ""


@dataclass
class EngineUnpaused(Event):
    account: str = ""


@dataclass
class OwnershipTransferred(Event):
    previous_owner: str = ""
    new_owner: str = ""


# ════════════════════════════════════════════════════════════════════════════
# LEDGER EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Transfer(Event):
    """Fungible (``amount``) or non-fungible (``token_id``) transfer."""
    src: str = ""
    dst: str = ""
    amount: int = 0
    token_id: Optional[int] = None


@dataclass
class Approval(Event):
    owner: str = ""
    spender: str = ""
    amount: int = 0
    token_id: Optional[int] = None


@dataclass
class ApprovalForAll(Event):
    owner: str = ""
    operator: str = ""
    approved: bool = False


@dataclass
class TransferSingle(Event):
    operator: str = ""
    src: str = ""
    dst: str = ""
    token_id: int = 0
    amount: int = 0


@dataclass
class TransferBatch(Event):
    operator: str = ""
    src: str = ""
    dst: str = ""
    token_ids: Tuple[int, ...] = ()
    amounts: Tuple[int, ...] = ()


# ════════════════════════════════════════════════════════════════════════════
# EVENT HANDLER
# ════════════════════════════════════════════════════════════════════════════


EventHandler = Callable[[Event], None]


@dataclass
class EventHandlerRegistration:
    """Registration for an event handler."""
    handler: EventHandler
    event_types: Set[Type[Event]]
    priority: int = 0
    filter_func: Optional[Callable[[Event], bool]] = None


class EventHandlerError(Exception):
    """Error during event handling."""
    def __init__(self, event: Event, handler: EventHandler, cause: Exception):
        self.event = event
        self.handler = handler
        self.cause = cause
        super().__init__(f"Handler {handler.__name__} failed for {event.event_type}: {cause}")


# ════════════════════════════════════════════════════════════════════════════
# EVENT BUS
# ════════════════════════════════════════════════════════════════════════════


class EventBus:
    """
    In-memory event bus for pub/sub communication.

    Subscribers only ever see committed events. A failing handler is
    isolated: it is counted, reported to ``on_error`` and never affects the
    transaction that produced the event.

    Example:
        bus = EventBus()

        @bus.subscribe(EscrowDeposited, EscrowWithdrawn)
        def track_escrow(event):
            print(f"Escrow event: {event.event_type}")
    """

    def __init__(
        self,
        on_error: Optional[Callable[[EventHandlerError], None]] = None,
    ):
        self._handlers: List[EventHandlerRegistration] = []
        self._lock = threading.RLock()
        self._on_error = on_error
        self._published_count = 0
        self._handled_count = 0
        self._error_count = 0

    def subscribe(
        self,
        *event_types: Type[Event],
        priority: int = 0,
        filter_func: Optional[Callable[[Event], bool]] = None,
    ) -> Callable[[EventHandler], EventHandler]:
        """
        Decorator to subscribe a handler to event types.

        Args:
            event_types: Event types to subscribe to (all events if omitted)
            priority: Handler priority (higher = earlier)
            filter_func: Optional filter function
        """
        def decorator(handler: EventHandler) -> EventHandler:
            registration = EventHandlerRegistration(
                handler=handler,
                event_types=set(event_types) if event_types else {Event},
                priority=priority,
                filter_func=filter_func,
            )
            with self._lock:
                self._handlers.append(registration)
                self._handlers.sort(key=lambda r: -r.priority)
            return handler
        return decorator

    def unsubscribe(self, handler: EventHandler) -> bool:
        """Unsubscribe a handler."""
        with self._lock:
            original_len = len(self._handlers)
            self._handlers = [r for r in self._handlers if r.handler != handler]
            return len(self._handlers) < original_len

    def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers in priority order."""
        with self._lock:
            self._published_count += 1
            handlers_to_call = [
                registration for registration in self._handlers
                if any(isinstance(event, t) for t in registration.event_types)
                and (registration.filter_func is None or registration.filter_func(event))
            ]

        for registration in handlers_to_call:
            self._call_handler(registration.handler, event)

    def _call_handler(self, handler: EventHandler, event: Event) -> None:
        """Call a handler with error handling."""
        try:
            handler(event)
            with self._lock:
                self._handled_count += 1
        except Exception as e:
            with self._lock:
                self._error_count += 1
            error = EventHandlerError(event, handler, e)
            logger.warning("Event handler failed: %s", error)
            if self._on_error:
                self._on_error(error)

    @property
    def metrics(self) -> Dict[str, int]:
        """Get event bus metrics."""
        with self._lock:
            return {
                "published_count": self._published_count,
                "handled_count": self._handled_count,
                "error_count": self._error_count,
                "handler_count": len(self._handlers),
            }


# ════════════════════════════════════════════════════════════════════════════
# EVENT STORE
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class EventRecord:
    """A persisted event record."""
    sequence_number: int
    event: Event
    stream_id: str
    version: int
    recorded_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "sequence_number": self.sequence_number,
            "event": self.event.to_dict(),
            "stream_id": self.stream_id,
            "version": self.version,
            "recorded_at": self.recorded_at,
        }


class EventStore:
    """
    Append-only event store.

    Events are organized into streams by emitter address, with a global
    sequence across all streams.
    """

    def __init__(self):
        self._events: List[EventRecord] = []
        self._streams: Dict[str, List[EventRecord]] = {}
        self._sequence_number = 0
        self._lock = threading.RLock()

    def append(self, stream_id: str, events: List[Event]) -> List[EventRecord]:
        """Append events to a stream."""
        with self._lock:
            stream = self._streams.setdefault(stream_id, [])
            records = []
            for event in events:
                self._sequence_number += 1
                record = EventRecord(
                    sequence_number=self._sequence_number,
                    event=event,
                    stream_id=stream_id,
                    version=len(stream) + 1,
                )
                self._events.append(record)
                stream.append(record)
                records.append(record)
            return records

    def read_stream(
        self,
        stream_id: str,
        from_version: int = 0,
        to_version: Optional[int] = None,
    ) -> List[Event]:
        """Read events from a stream."""
        with self._lock:
            if stream_id not in self._streams:
                return []

            stream = self._streams[stream_id]
            if to_version is None:
                to_version = len(stream)

            return [r.event for r in stream[from_version:to_version]]

    def read_all(
        self,
        from_position: int = 0,
        max_count: Optional[int] = None,
    ) -> List[EventRecord]:
        """Read events from all streams in global order."""
        with self._lock:
            if max_count is None:
                return self._events[from_position:]
            return self._events[from_position:from_position + max_count]

    def get_stream_ids(self) -> List[str]:
        """Get all stream IDs."""
        with self._lock:
            return list(self._streams.keys())

    @property
    def total_events(self) -> int:
        """Total number of events."""
        with self._lock:
            return len(self._events)
