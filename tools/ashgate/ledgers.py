"""
ASHGATE Reference Ledgers

In-memory asset ledgers for the three asset classes. They are the external
collaborators the migration engine consumes (the old and the new asset), and
they follow the conventional token-standard semantics:

    FungibleLedger       balances + allowances, transfer/transfer_from
    NonFungibleLedger    unique ids, per-token and operator approvals,
                         safe transfers with a receipt hook
    SemiFungibleLedger   (id, amount) balances, operator approvals,
                         single and batch safe transfers with receipt hooks

Issuance is minimal: the deploying account is the only minter and there is no
supply cap.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from tools.ashgate.events import (
    Approval,
    ApprovalForAll,
    Transfer,
    TransferBatch,
    TransferSingle,
)
from tools.ashgate.hardening import ZERO_ADDRESS, Validators
from tools.ashgate.host import Contract, Host, UnknownFunctionError
from tools.ashgate.interfaces import (
    NON_FUNGIBLE_RECEIVED,
    SEMI_FUNGIBLE_BATCH_RECEIVED,
    SEMI_FUNGIBLE_RECEIVED,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidReceiver,
    LedgerError,
    NonexistentToken,
    NotAuthorized,
)
from tools.ashgate.observability import AshgateLayer, get_logger

logger = get_logger("ledgers", AshgateLayer.LEDGER)

# Allowance value that is never decremented
UNLIMITED_ALLOWANCE = Validators.MAX_QUANTITY


def _quantity(value: int, field_name: str = "amount") -> int:
    return Validators.validate_quantity(value, field_name).unwrap()


def _address(value: str, field_name: str = "address") -> str:
    return Validators.validate_address(value, field_name).unwrap()


class _MintableLedger(Contract):
    """Shared minter bookkeeping."""

    def __init__(self, host: Host, name: str, symbol: str):
        super().__init__(host)
        self.name = name
        self.symbol = symbol
        self.minter = host.msg_sender
        logger.debug(
            "Ledger deployed",
            ledger=self.address,
            kind=type(self).__name__,
            symbol=symbol,
            minter=self.minter,
        )

    def _require_minter(self) -> None:
        if self.msg_sender != self.minter:
            raise NotAuthorized(f"{self.msg_sender} is not the minter of {self.symbol}")


# =============================================================================
# FUNGIBLE
# =============================================================================

class FungibleLedger(_MintableLedger):
    """Amount-based ledger with allowances."""

    def __init__(self, host: Host, name: str, symbol: str, decimals: int = 18):
        super().__init__(host, name, symbol)
        self.decimals = decimals
        self.total_supply = 0
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}

    def balance_of(self, owner: str) -> int:
        return self.balances.get(owner, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def approve(self, spender: str, amount: int) -> bool:
        spender = _address(spender, "spender")
        amount = _quantity(amount)
        owner = self.msg_sender
        self.allowances[(owner, spender)] = amount
        self.emit(Approval(owner=owner, spender=spender, amount=amount))
        return True

    def transfer(self, dst: str, amount: int) -> bool:
        self._transfer(self.msg_sender, dst, amount)
        return True

    def transfer_from(self, src: str, dst: str, amount: int) -> bool:
        src = _address(src, "src")
        amount = _quantity(amount)
        self._spend_allowance(src, self.msg_sender, amount)
        self._transfer(src, dst, amount)
        return True

    def mint(self, dst: str, amount: int) -> None:
        self._require_minter()
        dst = _address(dst, "dst")
        amount = _quantity(amount)
        if dst == ZERO_ADDRESS:
            raise InvalidReceiver("Cannot mint to the zero address")
        self.total_supply += amount
        self.balances[dst] = self.balance_of(dst) + amount
        self.emit(Transfer(src=ZERO_ADDRESS, dst=dst, amount=amount))

    def _spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        current = self.allowance(owner, spender)
        if current == UNLIMITED_ALLOWANCE:
            return
        if current < amount:
            raise InsufficientAllowance(
                f"Allowance {current} of {spender} over {owner} is below {amount}"
            )
        self.allowances[(owner, spender)] = current - amount

    def _transfer(self, src: str, dst: str, amount: int) -> None:
        dst = _address(dst, "dst")
        amount = _quantity(amount)
        if dst == ZERO_ADDRESS:
            raise InvalidReceiver("Cannot transfer to the zero address")
        balance = self.balance_of(src)
        if balance < amount:
            raise InsufficientBalance(f"Balance {balance} of {src} is below {amount}")
        self.balances[src] = balance - amount
        self.balances[dst] = self.balance_of(dst) + amount
        self.emit(Transfer(src=src, dst=dst, amount=amount))


# =============================================================================
# NON-FUNGIBLE
# =============================================================================

class NonFungibleLedger(_MintableLedger):
    """Unique-id ledger with per-token and operator approvals."""

    def __init__(self, host: Host, name: str, symbol: str):
        super().__init__(host, name, symbol)
        self.owners: Dict[int, str] = {}
        self.balances: Dict[str, int] = {}
        self.token_approvals: Dict[int, str] = {}
        self.operator_approvals: Dict[Tuple[str, str], bool] = {}

    def owner_of(self, token_id: int) -> str:
        owner = self.owners.get(token_id)
        if owner is None:
            raise NonexistentToken(f"Token {token_id} does not exist")
        return owner

    def balance_of(self, owner: str) -> int:
        return self.balances.get(owner, 0)

    def get_approved(self, token_id: int) -> str:
        self.owner_of(token_id)
        return self.token_approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return self.operator_approvals.get((owner, operator), False)

    def approve(self, to: str, token_id: int) -> None:
        to = _address(to, "to")
        owner = self.owner_of(token_id)
        sender = self.msg_sender
        if sender != owner and not self.is_approved_for_all(owner, sender):
            raise NotAuthorized(f"{sender} cannot approve token {token_id}")
        self.token_approvals[token_id] = to
        self.emit(Approval(owner=owner, spender=to, token_id=token_id))

    def set_approval_for_all(self, operator: str, approved: bool) -> None:
        operator = _address(operator, "operator")
        owner = self.msg_sender
        if operator == owner:
            raise LedgerError("Cannot set self as operator")
        self.operator_approvals[(owner, operator)] = bool(approved)
        self.emit(ApprovalForAll(owner=owner, operator=operator, approved=bool(approved)))

    def transfer_from(self, src: str, dst: str, token_id: int) -> None:
        src = _address(src, "src")
        dst = _address(dst, "dst")
        token_id = _quantity(token_id, "token_id")
        owner = self.owner_of(token_id)
        sender = self.msg_sender

        if owner != src:
            raise NotAuthorized(f"{src} does not own token {token_id}")
        if not (
            sender == owner
            or self.token_approvals.get(token_id) == sender
            or self.is_approved_for_all(owner, sender)
        ):
            raise NotAuthorized(f"{sender} is not approved for token {token_id}")
        if dst == ZERO_ADDRESS:
            raise InvalidReceiver("Cannot transfer to the zero address")

        self.token_approvals.pop(token_id, None)
        self.balances[src] = self.balance_of(src) - 1
        self.balances[dst] = self.balance_of(dst) + 1
        self.owners[token_id] = dst
        self.emit(Transfer(src=src, dst=dst, amount=1, token_id=token_id))

    def safe_transfer_from(self, src: str, dst: str, token_id: int, data: bytes = b"") -> None:
        operator = self.msg_sender
        self.transfer_from(src, dst, token_id)
        if self.host.is_contract(dst):
            _require_acceptance(
                self.host, dst, NON_FUNGIBLE_RECEIVED,
                "on_non_fungible_received", operator, src, token_id, data,
            )

    def mint(self, dst: str, token_id: int) -> None:
        self._require_minter()
        dst = _address(dst, "dst")
        token_id = _quantity(token_id, "token_id")
        if dst == ZERO_ADDRESS:
            raise InvalidReceiver("Cannot mint to the zero address")
        if token_id in self.owners:
            raise LedgerError(f"Token {token_id} already minted")
        self.owners[token_id] = dst
        self.balances[dst] = self.balance_of(dst) + 1
        self.emit(Transfer(src=ZERO_ADDRESS, dst=dst, amount=1, token_id=token_id))


# =============================================================================
# SEMI-FUNGIBLE
# =============================================================================

class SemiFungibleLedger(_MintableLedger):
    """(id, amount) ledger with operator approvals."""

    def __init__(self, host: Host, name: str, symbol: str):
        super().__init__(host, name, symbol)
        self.balances: Dict[Tuple[int, str], int] = {}
        self.operator_approvals: Dict[Tuple[str, str], bool] = {}

    def balance_of(self, owner: str, token_id: int) -> int:
        return self.balances.get((token_id, owner), 0)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return self.operator_approvals.get((owner, operator), False)

    def set_approval_for_all(self, operator: str, approved: bool) -> None:
        operator = _address(operator, "operator")
        owner = self.msg_sender
        if operator == owner:
            raise LedgerError("Cannot set self as operator")
        self.operator_approvals[(owner, operator)] = bool(approved)
        self.emit(ApprovalForAll(owner=owner, operator=operator, approved=bool(approved)))

    def safe_transfer_from(
        self,
        src: str,
        dst: str,
        token_id: int,
        amount: int,
        data: bytes = b"",
    ) -> None:
        operator = self.msg_sender
        src, dst = self._authorize(operator, src, dst)
        token_id = _quantity(token_id, "token_id")
        amount = _quantity(amount)

        self._move(src, dst, token_id, amount)
        self.emit(TransferSingle(
            operator=operator, src=src, dst=dst, token_id=token_id, amount=amount,
        ))

        if self.host.is_contract(dst):
            _require_acceptance(
                self.host, dst, SEMI_FUNGIBLE_RECEIVED,
                "on_semi_fungible_received", operator, src, token_id, amount, data,
            )

    def safe_batch_transfer_from(
        self,
        src: str,
        dst: str,
        token_ids: Sequence[int],
        amounts: Sequence[int],
        data: bytes = b"",
    ) -> None:
        operator = self.msg_sender
        src, dst = self._authorize(operator, src, dst)
        ids, values = self._pairs(token_ids, amounts)

        for token_id, amount in zip(ids, values):
            self._move(src, dst, token_id, amount)
        self.emit(TransferBatch(
            operator=operator, src=src, dst=dst, token_ids=tuple(ids), amounts=tuple(values),
        ))

        if self.host.is_contract(dst):
            _require_acceptance(
                self.host, dst, SEMI_FUNGIBLE_BATCH_RECEIVED,
                "on_semi_fungible_batch_received", operator, src, list(ids), list(values), data,
            )

    def mint(self, dst: str, token_id: int, amount: int) -> None:
        self.mint_batch(dst, [token_id], [amount])

    def mint_batch(self, dst: str, token_ids: Sequence[int], amounts: Sequence[int]) -> None:
        self._require_minter()
        dst = _address(dst, "dst")
        if dst == ZERO_ADDRESS:
            raise InvalidReceiver("Cannot mint to the zero address")
        ids, values = self._pairs(token_ids, amounts)
        for token_id, amount in zip(ids, values):
            self.balances[(token_id, dst)] = self.balance_of(dst, token_id) + amount
        self.emit(TransferBatch(
            operator=self.msg_sender, src=ZERO_ADDRESS, dst=dst,
            token_ids=tuple(ids), amounts=tuple(values),
        ))

    def _authorize(self, operator: str, src: str, dst: str) -> Tuple[str, str]:
        src = _address(src, "src")
        dst = _address(dst, "dst")
        if operator != src and not self.is_approved_for_all(src, operator):
            raise NotAuthorized(f"{operator} is not an approved operator for {src}")
        if dst == ZERO_ADDRESS:
            raise InvalidReceiver("Cannot transfer to the zero address")
        return src, dst

    @staticmethod
    def _pairs(token_ids: Sequence[int], amounts: Sequence[int]) -> Tuple[List[int], List[int]]:
        ids = Validators.validate_quantities(token_ids, "token_ids").unwrap()
        values = Validators.validate_quantities(amounts, "amounts").unwrap()
        if len(ids) != len(values):
            raise LedgerError(f"{len(ids)} ids but {len(values)} amounts")
        return ids, values

    def _move(self, src: str, dst: str, token_id: int, amount: int) -> None:
        balance = self.balance_of(src, token_id)
        if balance < amount:
            raise InsufficientBalance(
                f"Balance {balance} of {src} for token {token_id} is below {amount}"
            )
        self.balances[(token_id, src)] = balance - amount
        self.balances[(token_id, dst)] = self.balance_of(dst, token_id) + amount


def _require_acceptance(host: Host, recipient: str, expected: bytes, hook: str, *args) -> None:
    """Invoke a receipt hook on a contract recipient and insist on its magic value."""
    try:
        answer = host.call(recipient, hook, *args)
    except UnknownFunctionError as e:
        raise InvalidReceiver(f"{recipient} does not implement {hook}") from e
    if answer != expected:
        raise InvalidReceiver(f"{recipient} rejected the transfer")
