"""
ASHGATE Migration Engine

Atomically exchanges an old asset for its replacement, 1:1 by amount or by
identity. The old asset goes to a verified burn sink; the new asset comes out
of escrow the administrator pre-loaded into the engine.

Protocol (per element, inside one host transaction):

    caller ──migrate(item)──▶ engine
                                │
                                ├── gate: not paused, not re-entered
                                ├── zero quantity?            ZeroAmountError
                                ├── caller holds old?         NotOwner / InsufficientOldBalance
                                ├── engine holds new?         NewNotPreloaded
                                ├── engine may move old?      MissingApproval
                                │
                                ├── old: caller ──▶ sink      re-query sink,   exact delta
                                ├── new: engine ──▶ caller    re-query engine, exact delta
                                └── emit MigrationCompleted

Any failure raises and the host rolls back the whole call, batch included.
No element is ever half-migrated and no partial state survives.

Engines:
    FungibleMigrationEngine       migrate(amount); deposit / withdraw
    NonFungibleMigrationEngine    migrate(id), migrate_batch(ids);
                                  deposit_batch / withdraw_batch
    SemiFungibleMigrationEngine   migrate(id, amount);
                                  deposit_batch / withdraw_batch

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Type

from tools.ashgate.adapters import (
    AssetAdapter,
    AssetItem,
    FungibleAdapter,
    NonFungibleAdapter,
    SemiFungibleAdapter,
    aggregate,
)
from tools.ashgate.config import get_config
from tools.ashgate.events import (
    EngineDeployed,
    EscrowDeposited,
    EscrowWithdrawn,
    MigrationCompleted,
    UnrelatedAssetRecovered,
)
from tools.ashgate.hardening import (
    BatchLengthMismatchError,
    CannotRecoverProtectedAssetError,
    IdenticalAssetsError,
    MissingApprovalError,
    NewNotPreloadedError,
    NewTransferInvariantError,
    OldTransferInvariantError,
    TransferFailedError,
    Validators,
    check_batch_bounds,
    require_address,
    require_nonzero,
)
from tools.ashgate.host import Host
from tools.ashgate.interfaces import AssetClass
from tools.ashgate.observability import AshgateLayer, get_logger, timed_operation
from tools.ashgate.safety import (
    Ownable,
    Pausable,
    ReentrancyGuard,
    non_reentrant,
    only_administrator,
    when_not_paused,
)
from tools.ashgate.sink import TokenReceiver, verify_burn_sink

logger = get_logger("engine", AshgateLayer.ENGINE)


# =============================================================================
# SHARED ENGINE
# =============================================================================

class MigrationEngine(TokenReceiver, Ownable, Pausable, ReentrancyGuard):
    """
    Asset-class independent migration skeleton.

    Subclasses choose the adapter and expose the public entry points for
    their class; holder, escrow and approval checks, the verified transfer
    legs, escrow management and recovery all live here.
    """

    asset_class: AssetClass
    adapter_cls: Type[AssetAdapter]

    def __init__(self, host: Host, old_ledger: str, new_ledger: str, sink: str):
        super().__init__(host)

        old_ledger = require_address(old_ledger, "old_ledger")
        new_ledger = require_address(new_ledger, "new_ledger")
        if old_ledger == new_ledger:
            raise IdenticalAssetsError(
                "Old and new ledgers must differ",
                ledger=old_ledger,
            )

        self.old_ledger = old_ledger
        self.new_ledger = new_ledger
        self.sink = verify_burn_sink(host, sink)
        self.max_batch_size = get_config().engine.max_batch_size.get()

        self._old = self.adapter_cls(host, old_ledger)
        self._new = self.adapter_cls(host, new_ledger)

        self.emit(EngineDeployed(
            old_ledger=old_ledger,
            new_ledger=new_ledger,
            sink=self.sink,
            asset_class=self.asset_class.value,
        ))
        logger.info(
            "Migration engine deployed",
            engine=self.address,
            asset_class=self.asset_class.value,
            old_ledger=old_ledger,
            new_ledger=new_ledger,
            sink=self.sink,
            administrator=self.administrator,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "asset_class": self.asset_class.value,
            "old_ledger": self.old_ledger,
            "new_ledger": self.new_ledger,
            "sink": self.sink,
            "administrator": self.administrator,
            "paused": self.paused,
            "max_batch_size": self.max_batch_size,
        }

    # -------------------------------------------------------------------------
    # Request parsing
    # -------------------------------------------------------------------------

    def _batch(
        self,
        token_ids: Sequence[int],
        amounts: Optional[Sequence[int]] = None,
    ) -> List[AssetItem]:
        ids = Validators.validate_quantities(token_ids, "token_ids").unwrap()
        if amounts is None:
            check_batch_bounds(ids, self.max_batch_size)
            return [AssetItem(token_id, 1) for token_id in ids]

        quantities = Validators.validate_quantities(amounts, "amounts").unwrap()
        if len(ids) != len(quantities):
            raise BatchLengthMismatchError(
                f"{len(ids)} token ids but {len(quantities)} amounts",
                token_ids=len(ids),
                amounts=len(quantities),
            )
        check_batch_bounds(ids, self.max_batch_size)
        return [AssetItem(token_id, amount) for token_id, amount in zip(ids, quantities)]

    # -------------------------------------------------------------------------
    # Migration protocol
    # -------------------------------------------------------------------------

    def _migrate_items(self, items: Sequence[AssetItem]) -> None:
        caller = self.msg_sender
        for item in items:
            self._migrate_one(caller, item)

    def _migrate_one(self, caller: str, item: AssetItem) -> None:
        require_nonzero(item.amount)
        self._check_preconditions(caller, item)

        self._old.transfer_verified(
            caller, self.sink, [item], watch=self.sink, error_cls=OldTransferInvariantError
        )
        self._new.transfer_verified(
            self.address, caller, [item], watch=self.address, error_cls=NewTransferInvariantError
        )

        self.emit(MigrationCompleted(account=caller, token_id=item.token_id, amount=item.amount))
        logger.info(
            "Migration completed",
            engine=self.address,
            account=caller,
            token_id=item.token_id,
            amount=item.amount,
        )

    def _check_preconditions(self, caller: str, item: AssetItem) -> None:
        self._require_holder(caller, item)
        self._require_escrow(item)
        self._require_approval(self._old, caller, item)

    def _require_holder(self, caller: str, item: AssetItem) -> None:
        if not self._old.holds(caller, item):
            raise self._old.holder_error(
                f"{caller} does not hold {self._quantity_label(item)} of the old asset",
                account=caller,
                token_id=item.token_id,
                amount=item.amount,
            )

    def _require_escrow(self, item: AssetItem) -> None:
        if not self._new.holds(self.address, item):
            raise NewNotPreloadedError(
                f"Escrow does not hold {self._quantity_label(item)} of the new asset",
                token_id=item.token_id,
                amount=item.amount,
            )

    def _require_approval(self, adapter: AssetAdapter, owner: str, item: AssetItem) -> None:
        if not adapter.is_approved(owner, self.address, item):
            raise MissingApprovalError(
                f"Engine is not approved to move {self._quantity_label(item)} for {owner}",
                account=owner,
                ledger=adapter.ledger,
                token_id=item.token_id,
            )

    @staticmethod
    def _quantity_label(item: AssetItem) -> str:
        if item.token_id is None:
            return str(item.amount)
        return f"{item.amount} of token {item.token_id}"

    # -------------------------------------------------------------------------
    # Escrow inventory
    # -------------------------------------------------------------------------

    def _deposit(self, items: Sequence[AssetItem]) -> None:
        administrator = self.msg_sender
        for item in items:
            require_nonzero(item.amount)
            self._require_approval(self._new, administrator, item)

        self._new.transfer_verified(
            administrator, self.address, items, watch=self.address,
            error_cls=NewTransferInvariantError,
        )
        token_ids, amounts = self._event_fields(items)
        self.emit(EscrowDeposited(account=administrator, token_ids=token_ids, amounts=amounts))
        logger.info("Escrow deposited", engine=self.address, token_ids=token_ids, amounts=amounts)

    def _withdraw(self, items: Sequence[AssetItem]) -> None:
        administrator = self.msg_sender
        for item in items:
            require_nonzero(item.amount)
        for token_id, quantity in aggregate(items).items():
            self._require_escrow(AssetItem(token_id, quantity))

        self._new.transfer_verified(
            self.address, administrator, items, watch=self.address,
            error_cls=NewTransferInvariantError,
        )
        token_ids, amounts = self._event_fields(items)
        self.emit(EscrowWithdrawn(account=administrator, token_ids=token_ids, amounts=amounts))
        logger.info("Escrow withdrawn", engine=self.address, token_ids=token_ids, amounts=amounts)

    @staticmethod
    def _event_fields(items: Sequence[AssetItem]):
        token_ids = tuple(item.token_id for item in items if item.token_id is not None)
        amounts = tuple(item.amount for item in items)
        return token_ids, amounts

    # -------------------------------------------------------------------------
    # Recovery
    # -------------------------------------------------------------------------

    def _require_unprotected(self, ledger: str) -> None:
        if ledger in (self.old_ledger, self.new_ledger):
            raise CannotRecoverProtectedAssetError(
                f"{ledger} is managed by this engine and cannot be recovered",
                ledger=ledger,
            )

    @only_administrator
    @non_reentrant
    def recover_asset(self, token: str, amount: int) -> None:
        """Sweep a fungible balance accidentally sent to the engine."""
        amount = Validators.validate_quantity(amount).unwrap()
        require_nonzero(amount)
        token = require_address(token, "token")
        self._require_unprotected(token)

        if self.host.call(token, "transfer", self.administrator, amount) is False:
            raise TransferFailedError(
                f"Ledger {token} refused to release {amount}",
                token=token,
                amount=amount,
            )

        self.emit(UnrelatedAssetRecovered(token=token, account=self.administrator, amount=amount))
        logger.info("Unrelated asset recovered", engine=self.address, token=token, amount=amount)

    @only_administrator
    @non_reentrant
    def recover_non_fungible(self, ledger: str, token_id: int) -> None:
        """Sweep a stray non-fungible token to the administrator."""
        token_id = Validators.validate_quantity(token_id, "token_id").unwrap()
        ledger = require_address(ledger, "ledger")
        self._require_unprotected(ledger)

        self.host.call(ledger, "safe_transfer_from", self.address, self.administrator, token_id, b"")

        self.emit(UnrelatedAssetRecovered(
            token=ledger, account=self.administrator, token_id=token_id, amount=1
        ))
        logger.info(
            "Unrelated asset recovered",
            engine=self.address,
            token=ledger,
            token_id=token_id,
        )

    @only_administrator
    @non_reentrant
    def recover_semi_fungible(self, ledger: str, token_id: int, amount: int) -> None:
        """Sweep a stray (id, amount) position to the administrator."""
        token_id = Validators.validate_quantity(token_id, "token_id").unwrap()
        amount = Validators.validate_quantity(amount).unwrap()
        require_nonzero(amount)
        ledger = require_address(ledger, "ledger")
        self._require_unprotected(ledger)

        self.host.call(
            ledger, "safe_transfer_from", self.address, self.administrator, token_id, amount, b""
        )

        self.emit(UnrelatedAssetRecovered(
            token=ledger, account=self.administrator, token_id=token_id, amount=amount
        ))
        logger.info(
            "Unrelated asset recovered",
            engine=self.address,
            token=ledger,
            token_id=token_id,
            amount=amount,
        )

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    @only_administrator
    @non_reentrant
    def pause(self) -> None:
        super().pause()
        logger.info("Migrations paused", engine=self.address)

    @only_administrator
    @non_reentrant
    def unpause(self) -> None:
        super().unpause()
        logger.info("Migrations resumed", engine=self.address)

    @only_administrator
    @non_reentrant
    def transfer_ownership(self, new_owner: str) -> None:
        previous = self.administrator
        super().transfer_ownership(new_owner)
        logger.info(
            "Ownership transferred",
            engine=self.address,
            previous_owner=previous,
            new_owner=self.administrator,
        )


# =============================================================================
# ASSET CLASS ENGINES
# =============================================================================

class FungibleMigrationEngine(MigrationEngine):
    """Migrates a divisible balance 1:1 by amount."""

    asset_class = AssetClass.FUNGIBLE
    adapter_cls = FungibleAdapter

    def _check_preconditions(self, caller: str, item: AssetItem) -> None:
        self._require_holder(caller, item)
        self._require_approval(self._old, caller, item)
        self._require_escrow(item)

    @timed_operation(logger, "migrate")
    @when_not_paused
    @non_reentrant
    def migrate(self, amount: int) -> None:
        amount = Validators.validate_quantity(amount).unwrap()
        self._migrate_items([AssetItem(None, amount)])

    @only_administrator
    @non_reentrant
    def deposit(self, amount: int) -> None:
        amount = Validators.validate_quantity(amount).unwrap()
        self._deposit([AssetItem(None, amount)])

    @only_administrator
    @non_reentrant
    def withdraw(self, amount: int) -> None:
        amount = Validators.validate_quantity(amount).unwrap()
        self._withdraw([AssetItem(None, amount)])


class NonFungibleMigrationEngine(MigrationEngine):
    """Migrates unique tokens 1:1 by identity."""

    asset_class = AssetClass.NON_FUNGIBLE
    adapter_cls = NonFungibleAdapter

    @timed_operation(logger, "migrate")
    @when_not_paused
    @non_reentrant
    def migrate(self, token_id: int) -> None:
        token_id = Validators.validate_quantity(token_id, "token_id").unwrap()
        self._migrate_items([AssetItem(token_id, 1)])

    @timed_operation(logger, "migrate_batch")
    @when_not_paused
    @non_reentrant
    def migrate_batch(self, token_ids: Sequence[int]) -> None:
        """Migrate every id, in order, or none of them."""
        self._migrate_items(self._batch(token_ids))

    @only_administrator
    @non_reentrant
    def deposit_batch(self, token_ids: Sequence[int]) -> None:
        self._deposit(self._batch(token_ids))

    @only_administrator
    @non_reentrant
    def withdraw_batch(self, token_ids: Sequence[int]) -> None:
        self._withdraw(self._batch(token_ids))


class SemiFungibleMigrationEngine(MigrationEngine):
    """Migrates (id, amount) positions 1:1."""

    asset_class = AssetClass.SEMI_FUNGIBLE
    adapter_cls = SemiFungibleAdapter

    @timed_operation(logger, "migrate")
    @when_not_paused
    @non_reentrant
    def migrate(self, token_id: int, amount: int) -> None:
        token_id = Validators.validate_quantity(token_id, "token_id").unwrap()
        amount = Validators.validate_quantity(amount).unwrap()
        self._migrate_items([AssetItem(token_id, amount)])

    @only_administrator
    @non_reentrant
    def deposit_batch(self, token_ids: Sequence[int], amounts: Sequence[int]) -> None:
        self._deposit(self._batch(token_ids, amounts))

    @only_administrator
    @non_reentrant
    def withdraw_batch(self, token_ids: Sequence[int], amounts: Sequence[int]) -> None:
        self._withdraw(self._batch(token_ids, amounts))


ENGINES: Dict[AssetClass, Type[MigrationEngine]] = {
    AssetClass.FUNGIBLE: FungibleMigrationEngine,
    AssetClass.NON_FUNGIBLE: NonFungibleMigrationEngine,
    AssetClass.SEMI_FUNGIBLE: SemiFungibleMigrationEngine,
}


__all__ = [
    "ENGINES",
    "FungibleMigrationEngine",
    "MigrationEngine",
    "NonFungibleMigrationEngine",
    "SemiFungibleMigrationEngine",
]
