"""
ASHGATE Asset Ledger Adapters

One adapter per asset class wraps an external ledger behind the same three
capabilities the migration protocol needs:

    holding(account, token_id)      how much of the asset ``account`` holds
    is_approved(owner, operator)    may ``operator`` move ``owner``'s asset
    transfer_verified(...)          move, then re-query and demand the exact
                                    delta (transfer-then-verify)

Every element the engine handles is an ``AssetItem``:

    Fungible        AssetItem(token_id=None, amount=n)
    Non-fungible    AssetItem(token_id=id,   amount=1)
    Semi-fungible   AssetItem(token_id=id,   amount=n)

A non-fungible holding is 1 when ``account`` owns the id and 0 otherwise, so
the same delta arithmetic covers all three classes.

All ledger traffic goes through ``Host.call``; the ledger sees the executing
engine as its caller.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Type

from tools.ashgate.hardening import (
    InsufficientOldBalanceError,
    InvariantChecker,
    MigrationError,
    NotOwnerError,
)
from tools.ashgate.host import Host
from tools.ashgate.interfaces import AssetClass, LedgerError


@dataclass(frozen=True)
class AssetItem:
    """Identity and quantity of one element of a request."""
    token_id: Optional[int]
    amount: int


def aggregate(items: Sequence[AssetItem]) -> Dict[Optional[int], int]:
    """Total quantity per identity, in first-seen order."""
    totals: Dict[Optional[int], int] = {}
    for item in items:
        totals[item.token_id] = totals.get(item.token_id, 0) + item.amount
    return totals


class AssetAdapter(ABC):
    """Capability set over one external ledger."""

    asset_class: AssetClass
    # Raised when a caller does not hold the old asset
    holder_error: Type[MigrationError] = InsufficientOldBalanceError

    def __init__(self, host: Host, ledger: str):
        self.host = host
        self.ledger = ledger

    def _call(self, method: str, *args):
        return self.host.call(self.ledger, method, *args)

    @abstractmethod
    def holding(self, account: str, token_id: Optional[int]) -> int:
        """Quantity of ``token_id`` held by ``account``."""

    @abstractmethod
    def is_approved(self, owner: str, operator: str, item: AssetItem) -> bool:
        """Whether ``operator`` may move ``item`` out of ``owner``'s holding."""

    @abstractmethod
    def move(
        self,
        src: str,
        dst: str,
        items: Sequence[AssetItem],
        error_cls: Type[MigrationError],
    ) -> None:
        """Instruct the ledger to move ``items``; ``error_cls`` reports a refusal."""

    def holds(self, account: str, item: AssetItem) -> bool:
        return self.holding(account, item.token_id) >= item.amount

    def transfer_verified(
        self,
        src: str,
        dst: str,
        items: Sequence[AssetItem],
        watch: str,
        error_cls: Type[MigrationError],
    ) -> None:
        """
        Move ``items`` from ``src`` to ``dst`` and assert that ``watch``
        (either endpoint) changed by exactly the requested quantity per id.

        Guards against fee-on-transfer, partial and silently ignored
        transfers; success of the ledger call alone proves nothing.
        """
        expected = aggregate(items)
        before = {token_id: self.holding(watch, token_id) for token_id in expected}

        self.move(src, dst, items, error_cls)

        incoming = watch == dst
        for token_id, quantity in expected.items():
            InvariantChecker.check_exact_delta(
                before[token_id],
                self.holding(watch, token_id),
                quantity,
                incoming,
                error_cls,
                subject=self._describe(watch, token_id),
            )

    def _describe(self, account: str, token_id: Optional[int]) -> str:
        if token_id is None:
            return f"balance of {account}"
        return f"holding of {account} in token {token_id}"


class FungibleAdapter(AssetAdapter):
    asset_class = AssetClass.FUNGIBLE

    def holding(self, account: str, token_id: Optional[int] = None) -> int:
        return self._call("balance_of", account)

    def allowance(self, owner: str, spender: str) -> int:
        return self._call("allowance", owner, spender)

    def is_approved(self, owner: str, operator: str, item: AssetItem) -> bool:
        return self.allowance(owner, operator) >= item.amount

    def move(self, src, dst, items, error_cls):
        total = sum(item.amount for item in items)
        if src == self.host.this:
            result = self._call("transfer", dst, total)
        else:
            result = self._call("transfer_from", src, dst, total)
        # Ledgers that return nothing are accepted; an explicit False is not
        if result is False:
            raise error_cls(f"Ledger {self.ledger} reported a failed transfer of {total}")


class NonFungibleAdapter(AssetAdapter):
    asset_class = AssetClass.NON_FUNGIBLE
    holder_error = NotOwnerError

    def owner_of(self, token_id: int) -> Optional[str]:
        """Owner of ``token_id``, or None when the ledger does not know it."""
        try:
            return self._call("owner_of", token_id)
        except LedgerError:
            return None

    def holding(self, account: str, token_id: Optional[int]) -> int:
        return 1 if self.owner_of(token_id) == account else 0

    def is_approved(self, owner: str, operator: str, item: AssetItem) -> bool:
        if self._call("get_approved", item.token_id) == operator:
            return True
        return bool(self._call("is_approved_for_all", owner, operator))

    def move(self, src, dst, items, error_cls):
        for item in items:
            self._call("safe_transfer_from", src, dst, item.token_id, b"")


class SemiFungibleAdapter(AssetAdapter):
    asset_class = AssetClass.SEMI_FUNGIBLE

    def holding(self, account: str, token_id: Optional[int]) -> int:
        return self._call("balance_of", account, token_id)

    def is_approved(self, owner: str, operator: str, item: AssetItem) -> bool:
        return bool(self._call("is_approved_for_all", owner, operator))

    def move(self, src, dst, items, error_cls):
        if len(items) == 1:
            item = items[0]
            self._call("safe_transfer_from", src, dst, item.token_id, item.amount, b"")
            return
        ids: List[int] = [item.token_id for item in items]
        amounts: List[int] = [item.amount for item in items]
        self._call("safe_batch_transfer_from", src, dst, ids, amounts, b"")


ADAPTERS: Dict[AssetClass, Type[AssetAdapter]] = {
    AssetClass.FUNGIBLE: FungibleAdapter,
    AssetClass.NON_FUNGIBLE: NonFungibleAdapter,
    AssetClass.SEMI_FUNGIBLE: SemiFungibleAdapter,
}
