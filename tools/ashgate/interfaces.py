"""
ASHGATE External Interfaces

The engine consumes three kinds of external contract: an asset ledger (one
shape per asset class), a burn sink, and the receipt hooks that safe
transfers invoke on contract recipients. This module names those shapes and
the magic values the handshakes exchange; the engine never depends on a
concrete ledger class.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Protocol, Sequence, runtime_checkable


def selector(signature: str) -> bytes:
    """Four-byte identifier of a function signature."""
    return hashlib.sha3_256(signature.encode()).digest()[:4]


# Receipt hook answers; a recipient that returns anything else rejects the transfer.
NON_FUNGIBLE_RECEIVED = selector("on_non_fungible_received(address,address,uint256,bytes)")
SEMI_FUNGIBLE_RECEIVED = selector("on_semi_fungible_received(address,address,uint256,uint256,bytes)")
SEMI_FUNGIBLE_BATCH_RECEIVED = selector(
    "on_semi_fungible_batch_received(address,address,uint256[],uint256[],bytes)"
)

# Reserved answer of the sink handshake. Full digest, so no other function's
# return value collides with it by accident.
BURN_SINK_MAGIC = hashlib.sha3_256(b"ashgate.burn-sink.v1").digest()


class AssetClass(Enum):
    """Asset classes an engine can be instantiated for."""
    FUNGIBLE = "fungible"
    NON_FUNGIBLE = "non_fungible"
    SEMI_FUNGIBLE = "semi_fungible"


# =============================================================================
# LEDGER ERRORS
# =============================================================================

class LedgerError(Exception):
    """A ledger rejected the requested operation."""
    code = "LedgerError"


class InsufficientBalance(LedgerError):
    code = "InsufficientBalance"


class InsufficientAllowance(LedgerError):
    code = "InsufficientAllowance"


class NonexistentToken(LedgerError):
    code = "NonexistentToken"


class NotAuthorized(LedgerError):
    code = "NotAuthorized"


class InvalidReceiver(LedgerError):
    code = "InvalidReceiver"


# =============================================================================
# LEDGER PROTOCOLS
# =============================================================================

@runtime_checkable
class FungibleLedgerInterface(Protocol):
    def balance_of(self, owner: str) -> int: ...

    def allowance(self, owner: str, spender: str) -> int: ...

    def transfer_from(self, src: str, dst: str, amount: int) -> bool: ...

    def transfer(self, dst: str, amount: int) -> bool: ...


@runtime_checkable
class NonFungibleLedgerInterface(Protocol):
    def owner_of(self, token_id: int) -> str: ...

    def get_approved(self, token_id: int) -> str: ...

    def is_approved_for_all(self, owner: str, operator: str) -> bool: ...

    def safe_transfer_from(self, src: str, dst: str, token_id: int, data: bytes = b"") -> None: ...


@runtime_checkable
class SemiFungibleLedgerInterface(Protocol):
    def balance_of(self, owner: str, token_id: int) -> int: ...

    def is_approved_for_all(self, owner: str, operator: str) -> bool: ...

    def safe_transfer_from(
        self, src: str, dst: str, token_id: int, amount: int, data: bytes = b""
    ) -> None: ...

    def safe_batch_transfer_from(
        self,
        src: str,
        dst: str,
        token_ids: Sequence[int],
        amounts: Sequence[int],
        data: bytes = b"",
    ) -> None: ...


# =============================================================================
# RECEIVER AND SINK PROTOCOLS
# =============================================================================

@runtime_checkable
class NonFungibleReceiver(Protocol):
    def on_non_fungible_received(
        self, operator: str, src: str, token_id: int, data: bytes
    ) -> bytes: ...


@runtime_checkable
class SemiFungibleReceiver(Protocol):
    def on_semi_fungible_received(
        self, operator: str, src: str, token_id: int, amount: int, data: bytes
    ) -> bytes: ...

    def on_semi_fungible_batch_received(
        self,
        operator: str,
        src: str,
        token_ids: Sequence[int],
        amounts: Sequence[int],
        data: bytes,
    ) -> bytes: ...


@runtime_checkable
class BurnSinkInterface(NonFungibleReceiver, SemiFungibleReceiver, Protocol):
    """Irreversible custody: answers the handshake, accepts every receipt."""

    def is_burn_sink(self) -> bytes: ...
