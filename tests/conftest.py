import os
import pathlib
import sys
from dataclasses import dataclass
from typing import Any

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import tools`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from tools.ashgate.config import ConfigManager  # noqa: E402
from tools.ashgate.engine import (  # noqa: E402
    FungibleMigrationEngine,
    MigrationEngine,
    NonFungibleMigrationEngine,
    SemiFungibleMigrationEngine,
)
from tools.ashgate.host import Contract, Host  # noqa: E402
from tools.ashgate.ledgers import (  # noqa: E402
    FungibleLedger,
    NonFungibleLedger,
    SemiFungibleLedger,
)
from tools.ashgate.sink import BurnSink  # noqa: E402


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless ASHGATE_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    run_slow = _env_flag('ASHGATE_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set ASHGATE_RUN_SLOW=1 to enable'))


# =============================================================================
# SHARED FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def config_manager():
    """Every test starts from default configuration."""
    manager = ConfigManager()
    manager.reset()
    yield manager
    manager.reset()


@pytest.fixture
def host() -> Host:
    return Host()


@pytest.fixture
def admin(host: Host) -> str:
    return host.create_account("admin")


@pytest.fixture
def alice(host: Host) -> str:
    return host.create_account("alice")


@pytest.fixture
def bob(host: Host) -> str:
    return host.create_account("bob")


@pytest.fixture
def sink(host: Host, admin: str) -> str:
    return host.deploy(admin, BurnSink).address


@dataclass
class Deployment:
    """An engine wired to its two ledgers, with accounts to drive it."""
    host: Host
    admin: str
    alice: str
    bob: str
    sink: str
    old: Contract
    new: Contract
    engine: MigrationEngine

    def engine_call(self, sender: str, method: str, *args: Any) -> Any:
        return self.host.transact(sender, self.engine.address, method, *args)

    def old_call(self, sender: str, method: str, *args: Any) -> Any:
        return self.host.transact(sender, self.old.address, method, *args)

    def new_call(self, sender: str, method: str, *args: Any) -> Any:
        return self.host.transact(sender, self.new.address, method, *args)


@pytest.fixture
def fungible(host, admin, alice, bob, sink) -> Deployment:
    """
    Alice holds 1,000 OLD. The administrator holds 1,000 NEW and has
    loaded 500 of it into escrow. Alice has not approved the engine.
    """
    old = host.deploy(admin, FungibleLedger, "Old Token", "OLD")
    new = host.deploy(admin, FungibleLedger, "New Token", "NEW")
    engine = host.deploy(admin, FungibleMigrationEngine, old.address, new.address, sink)
    d = Deployment(host, admin, alice, bob, sink, old, new, engine)

    d.old_call(admin, "mint", alice, 1_000)
    d.new_call(admin, "mint", admin, 1_000)
    d.new_call(admin, "approve", engine.address, 500)
    d.engine_call(admin, "deposit", 500)
    return d


@pytest.fixture
def non_fungible(host, admin, alice, bob, sink) -> Deployment:
    """
    Alice owns old ids 1-5. The administrator minted new ids 1-5 and has
    deposited ids 1, 2 and 3. Alice has not approved the engine.
    """
    old = host.deploy(admin, NonFungibleLedger, "Old Deed", "ODEED")
    new = host.deploy(admin, NonFungibleLedger, "New Deed", "NDEED")
    engine = host.deploy(admin, NonFungibleMigrationEngine, old.address, new.address, sink)
    d = Deployment(host, admin, alice, bob, sink, old, new, engine)

    for token_id in range(1, 6):
        d.old_call(admin, "mint", alice, token_id)
        d.new_call(admin, "mint", admin, token_id)
    d.new_call(admin, "set_approval_for_all", engine.address, True)
    d.engine_call(admin, "deposit_batch", [1, 2, 3])
    return d


@pytest.fixture
def semi_fungible(host, admin, alice, bob, sink) -> Deployment:
    """
    Alice holds 100 of old id 7 and 50 of old id 8. The administrator
    minted the same positions on the new ledger and deposited 60 of id 7.
    Alice has not approved the engine.
    """
    old = host.deploy(admin, SemiFungibleLedger, "Old Units", "OUNIT")
    new = host.deploy(admin, SemiFungibleLedger, "New Units", "NUNIT")
    engine = host.deploy(admin, SemiFungibleMigrationEngine, old.address, new.address, sink)
    d = Deployment(host, admin, alice, bob, sink, old, new, engine)

    d.old_call(admin, "mint_batch", alice, [7, 8], [100, 50])
    d.new_call(admin, "mint_batch", admin, [7, 8], [100, 50])
    d.new_call(admin, "set_approval_for_all", engine.address, True)
    d.engine_call(admin, "deposit_batch", [7], [60])
    return d
