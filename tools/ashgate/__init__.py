"""
ASHGATE: Atomic Asset Migration Engine

Lets a holder exchange an old, deprecated asset for its replacement in one
all-or-nothing step. The old asset is sent irreversibly to a verified burn
sink; the new asset is released from escrow the administrator pre-loaded
into the engine. Fungible balances, unique tokens and (id, amount) positions
are all supported, 1:1 by amount or by identity.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                       ATOMIC ASSET MIGRATION                            │
    │                                                                         │
    │  LAYER 3: MIGRATION                                                     │
    │    engine.py        Protocol, escrow inventory, recovery per class      │
    │    adapters.py      Per-class ledger capabilities, transfer-then-verify │
    │    safety.py        Administrator, pause gate, reentrancy guard         │
    │                                                                         │
    │  LAYER 2: COUNTERPARTIES                                                │
    │    interfaces.py    Ledger, receiver and sink shapes; magic values      │
    │    ledgers.py       Reference fungible / non-fungible / semi ledgers    │
    │    sink.py          Burn sink and its handshake                         │
    │                                                                         │
    │  LAYER 1: EXECUTION                                                     │
    │    host.py          Atomic transactions with snapshot and rollback      │
    │    events.py        Event types, bus and append-only store              │
    │    hardening.py     Validation and the engine error taxonomy            │
    │    config.py        YAML / environment configuration                    │
    │    observability.py Structured logging and correlation ids              │
    │                                                                         │
    └─────────────────────────────────────────────────────────────────────────┘

Core Concepts
─────────────

    Old / New asset: The deprecated ledger being retired and its successor.
    Every migration consumes exactly the old quantity it releases of the new.

    Escrow: New assets held by the engine before any migration can draw on
    them. Only the administrator loads or unloads escrow.

    Burn sink: A contract that accepts assets and can never release them. Its
    identity is proven by a handshake when the engine is deployed.

    Transfer-then-verify: After every ledger call the engine re-queries the
    ledger and demands the exact delta, so a ledger that takes fees, moves
    less or silently does nothing aborts the migration.

Design Principles
─────────────────

    Atomic Operations: A migration (or a whole batch) completes fully or leaves
    no trace. The host rolls back every contract on failure.

    Fail-Safe Defaults: Configuration errors abort deployment. Preconditions
    are checked before any ledger moves anything.

    Least Privilege: Anyone may migrate; only the administrator manages escrow,
    pauses or recovers stray assets, and never the two managed assets.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

__version__ = "0.1.0"
__codename__ = "ASHGATE"

# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import ASHGATE modules on first access."""

    # Engine exports
    if name in ("MigrationEngine", "FungibleMigrationEngine",
                "NonFungibleMigrationEngine", "SemiFungibleMigrationEngine", "ENGINES"):
        from tools.ashgate import engine
        return getattr(engine, name)

    # Adapter exports
    if name in ("AssetItem", "AssetAdapter", "FungibleAdapter", "NonFungibleAdapter",
                "SemiFungibleAdapter", "ADAPTERS"):
        from tools.ashgate import adapters
        return getattr(adapters, name)

    # Host exports
    if name in ("Host", "Contract", "CallFrame", "HostError", "NoContractError",
                "UnknownFunctionError", "CallDepthExceeded", "HostBusyError"):
        from tools.ashgate import host
        return getattr(host, name)

    # Counterparty exports
    if name in ("FungibleLedger", "NonFungibleLedger", "SemiFungibleLedger",
                "UNLIMITED_ALLOWANCE"):
        from tools.ashgate import ledgers
        return getattr(ledgers, name)

    if name in ("BurnSink", "TokenReceiver", "verify_burn_sink"):
        from tools.ashgate import sink
        return getattr(sink, name)

    if name in ("AssetClass", "BURN_SINK_MAGIC", "LedgerError"):
        from tools.ashgate import interfaces
        return getattr(interfaces, name)

    # Hardening exports
    if name in ("MigrationError", "ConfigurationError", "AuthorizationError",
                "PreconditionError", "InvariantViolation", "SafetyViolation",
                "ValidationError", "ValidationErrors", "Validators", "ZERO_ADDRESS"):
        from tools.ashgate import hardening
        return getattr(hardening, name)

    # Config exports
    if name in ("ConfigManager", "AshgateConfig", "get_config", "get_config_manager"):
        from tools.ashgate import config
        return getattr(config, name)

    raise AttributeError(f"module 'ashgate' has no attribute '{name}'")

__all__ = [
    # Version info
    "__version__",
    "__codename__",
    # Engine
    "MigrationEngine",
    "FungibleMigrationEngine",
    "NonFungibleMigrationEngine",
    "SemiFungibleMigrationEngine",
    # Host
    "Host",
    "Contract",
    # Counterparties
    "FungibleLedger",
    "NonFungibleLedger",
    "SemiFungibleLedger",
    "BurnSink",
    "AssetClass",
    # Errors
    "MigrationError",
    # Config
    "get_config",
]
