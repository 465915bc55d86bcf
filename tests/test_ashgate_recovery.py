"""
ASHGATE Recovery Tests

The administrator may sweep assets accidentally sent to the engine, except
the two ledgers the engine manages.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import pytest

from tools.ashgate.events import UnrelatedAssetRecovered
from tools.ashgate.hardening import (
    CannotRecoverProtectedAssetError,
    NotAdministratorError,
    TransferFailedError,
    ZERO_ADDRESS,
    ZeroAddressError,
    ZeroAmountError,
)
from tools.ashgate.interfaces import InsufficientBalance
from tools.ashgate.ledgers import FungibleLedger, NonFungibleLedger, SemiFungibleLedger


class RefusingLedger(FungibleLedger):
    """Returns False from transfer."""

    def transfer(self, dst, amount):
        return False


@pytest.fixture
def stray(fungible):
    """A third fungible token with 50 units stuck in the engine."""
    d = fungible
    token = d.host.deploy(d.admin, FungibleLedger, "Stray", "STRAY")
    d.host.transact(d.admin, token.address, "mint", d.engine.address, 50)
    return token


class TestRecoverAsset:
    """Fungible sweep."""

    def test_sweeps_to_administrator(self, fungible, stray):
        d = fungible
        d.engine_call(d.admin, "recover_asset", stray.address, 30)
        assert stray.balance_of(d.admin) == 30
        assert stray.balance_of(d.engine.address) == 20

        event = d.host.logs(UnrelatedAssetRecovered)[-1]
        assert event.token == stray.address
        assert event.account == d.admin
        assert event.token_id is None
        assert event.amount == 30

    def test_goes_to_current_administrator(self, fungible, stray):
        d = fungible
        d.engine_call(d.admin, "transfer_ownership", d.bob)
        d.engine_call(d.bob, "recover_asset", stray.address, 50)
        assert stray.balance_of(d.bob) == 50

    def test_zero_amount(self, fungible, stray):
        d = fungible
        with pytest.raises(ZeroAmountError):
            d.engine_call(d.admin, "recover_asset", stray.address, 0)

    def test_old_ledger_protected(self, fungible):
        d = fungible
        d.old_call(d.alice, "transfer", d.engine.address, 10)
        with pytest.raises(CannotRecoverProtectedAssetError) as exc_info:
            d.engine_call(d.admin, "recover_asset", d.old.address, 10)
        assert exc_info.value.code == "CannotRecoverProtectedAsset"

    def test_new_ledger_protected(self, fungible):
        """Escrow can only leave through withdraw."""
        d = fungible
        with pytest.raises(CannotRecoverProtectedAssetError):
            d.engine_call(d.admin, "recover_asset", d.new.address, 10)
        assert d.new.balance_of(d.engine.address) == 500

    def test_zero_token(self, fungible):
        d = fungible
        with pytest.raises(ZeroAddressError):
            d.engine_call(d.admin, "recover_asset", ZERO_ADDRESS, 1)

    def test_more_than_held(self, fungible, stray):
        d = fungible
        with pytest.raises(InsufficientBalance):
            d.engine_call(d.admin, "recover_asset", stray.address, 51)
        assert stray.balance_of(d.engine.address) == 50

    def test_false_return(self, fungible):
        d = fungible
        token = d.host.deploy(d.admin, RefusingLedger, "Refuse", "NOPE")
        d.host.transact(d.admin, token.address, "mint", d.engine.address, 5)
        with pytest.raises(TransferFailedError):
            d.engine_call(d.admin, "recover_asset", token.address, 5)
        assert d.host.logs(UnrelatedAssetRecovered) == []


class TestRecoverNonFungible:
    """Unique-token sweep."""

    @pytest.fixture
    def stray_deed(self, non_fungible):
        d = non_fungible
        deed = d.host.deploy(d.admin, NonFungibleLedger, "Stray Deed", "SDEED")
        d.host.transact(d.admin, deed.address, "mint", d.bob, 77)
        d.host.transact(d.bob, deed.address, "safe_transfer_from", d.bob, d.engine.address, 77)
        return deed

    def test_engine_accepts_safe_transfers(self, non_fungible, stray_deed):
        assert stray_deed.owner_of(77) == non_fungible.engine.address

    def test_sweeps_to_administrator(self, non_fungible, stray_deed):
        d = non_fungible
        d.engine_call(d.admin, "recover_non_fungible", stray_deed.address, 77)
        assert stray_deed.owner_of(77) == d.admin

        event = d.host.logs(UnrelatedAssetRecovered)[-1]
        assert (event.token, event.token_id, event.amount) == (stray_deed.address, 77, 1)

    def test_managed_ledgers_protected(self, non_fungible):
        d = non_fungible
        for ledger in (d.old.address, d.new.address):
            with pytest.raises(CannotRecoverProtectedAssetError):
                d.engine_call(d.admin, "recover_non_fungible", ledger, 1)
        assert d.new.owner_of(1) == d.engine.address


class TestRecoverSemiFungible:
    """(id, amount) sweep."""

    @pytest.fixture
    def stray_position(self, semi_fungible):
        d = semi_fungible
        ledger = d.host.deploy(d.admin, SemiFungibleLedger, "Stray", "SSF")
        d.host.transact(d.admin, ledger.address, "mint", d.bob, 4, 30)
        d.host.transact(d.bob, ledger.address, "safe_transfer_from", d.bob, d.engine.address, 4, 30, b"")
        return ledger

    def test_engine_accepts_safe_transfers(self, semi_fungible, stray_position):
        assert stray_position.balance_of(semi_fungible.engine.address, 4) == 30

    def test_sweeps_to_administrator(self, semi_fungible, stray_position):
        d = semi_fungible
        d.engine_call(d.admin, "recover_semi_fungible", stray_position.address, 4, 12)
        assert stray_position.balance_of(d.admin, 4) == 12
        assert stray_position.balance_of(d.engine.address, 4) == 18

        event = d.host.logs(UnrelatedAssetRecovered)[-1]
        assert (event.token, event.account, event.token_id, event.amount) == (
            stray_position.address, d.admin, 4, 12,
        )

    def test_works_while_paused(self, semi_fungible, stray_position):
        d = semi_fungible
        d.engine_call(d.admin, "pause")
        d.engine_call(d.admin, "recover_semi_fungible", stray_position.address, 4, 30)
        assert stray_position.balance_of(d.admin, 4) == 30

    def test_zero_amount(self, semi_fungible, stray_position):
        d = semi_fungible
        with pytest.raises(ZeroAmountError):
            d.engine_call(d.admin, "recover_semi_fungible", stray_position.address, 4, 0)

    def test_zero_ledger(self, semi_fungible):
        d = semi_fungible
        with pytest.raises(ZeroAddressError):
            d.engine_call(d.admin, "recover_semi_fungible", ZERO_ADDRESS, 4, 1)

    def test_more_than_held(self, semi_fungible, stray_position):
        d = semi_fungible
        with pytest.raises(InsufficientBalance):
            d.engine_call(d.admin, "recover_semi_fungible", stray_position.address, 4, 31)
        assert stray_position.balance_of(d.engine.address, 4) == 30

    def test_managed_ledgers_protected(self, semi_fungible):
        d = semi_fungible
        for ledger in (d.old.address, d.new.address):
            with pytest.raises(CannotRecoverProtectedAssetError):
                d.engine_call(d.admin, "recover_semi_fungible", ledger, 7, 1)
        assert d.new.balance_of(d.engine.address, 7) == 60

    def test_only_administrator(self, semi_fungible, stray_position):
        d = semi_fungible
        with pytest.raises(NotAdministratorError):
            d.engine_call(d.bob, "recover_semi_fungible", stray_position.address, 4, 1)
