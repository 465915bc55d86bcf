"""
ASHGATE Burn Sink

The sink is the irreversible destination for migrated old assets. The host
has no universal burn address, so the sink is a dedicated contract whose
identity is proven by a handshake rather than by a sentinel value:

    engine constructor ──call──▶ sink.is_burn_sink() ──▶ BURN_SINK_MAGIC ?
                                                            │
                                         yes: deployment continues
                                         no / raises: InvalidSinkError,
                                                      deployment rolled back

The sink accepts every receipt hook and exposes no way to move anything out.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from typing import Sequence

from tools.ashgate.hardening import InvalidSinkError, require_address
from tools.ashgate.host import Contract, Host
from tools.ashgate.interfaces import (
    BURN_SINK_MAGIC,
    NON_FUNGIBLE_RECEIVED,
    SEMI_FUNGIBLE_BATCH_RECEIVED,
    SEMI_FUNGIBLE_RECEIVED,
)
from tools.ashgate.observability import AshgateLayer, get_logger

logger = get_logger("sink", AshgateLayer.SINK)


class TokenReceiver(Contract):
    """Accepts every safe transfer addressed to the contract."""

    def on_non_fungible_received(
        self, operator: str, src: str, token_id: int, data: bytes
    ) -> bytes:
        return NON_FUNGIBLE_RECEIVED

    def on_semi_fungible_received(
        self, operator: str, src: str, token_id: int, amount: int, data: bytes
    ) -> bytes:
        return SEMI_FUNGIBLE_RECEIVED

    def on_semi_fungible_batch_received(
        self,
        operator: str,
        src: str,
        token_ids: Sequence[int],
        amounts: Sequence[int],
        data: bytes,
    ) -> bytes:
        return SEMI_FUNGIBLE_BATCH_RECEIVED


class BurnSink(TokenReceiver):
    """Write-only custody for burned assets."""

    def __init__(self, host: Host):
        super().__init__(host)
        logger.info("Burn sink deployed", sink=self.address, deployer=host.msg_sender)

    def is_burn_sink(self) -> bytes:
        return BURN_SINK_MAGIC


def verify_burn_sink(host: Host, sink: str) -> str:
    """
    Perform the sink handshake from the executing contract.

    Any failure to reach the sink, any exception it raises and any answer
    other than ``BURN_SINK_MAGIC`` is reported as ``InvalidSinkError``.
    """
    sink = require_address(sink, "sink")
    try:
        answer = host.call(sink, "is_burn_sink")
    except Exception as e:
        raise InvalidSinkError(f"Sink {sink} failed the handshake: {e}", sink=sink) from e

    if answer != BURN_SINK_MAGIC:
        raise InvalidSinkError(f"Sink {sink} answered the handshake incorrectly", sink=sink)
    return sink
