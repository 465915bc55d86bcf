"""
ASHGATE Validation and Hardening Module

Error taxonomy, input validation and invariant enforcement shared by every
ASHGATE component. It addresses:

1. Enumerable error kinds for every failure the engine can report
2. Input validation with sanitization (addresses, quantities, batches)
3. Post-condition checks for ledger calls (transfer-then-verify)

Security Model:
    - All inputs are untrusted until validated
    - Ledger transfer results are never trusted without re-querying state
    - Every failure aborts the enclosing host transaction; nothing is retried

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence


# =============================================================================
# VALIDATION ERROR TYPES
# =============================================================================

class ValidationError(Exception):
    """Base exception for validation failures."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class ValidationErrors(Exception):
    """Collection of validation errors."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        messages = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(f"Validation failed: {messages}")


# =============================================================================
# ENGINE ERROR TAXONOMY
# =============================================================================

class MigrationError(Exception):
    """
    Base class for every error the migration engine reports.

    ``code`` is the enumerable error kind; callers match on it (or on the
    class) rather than on the message.
    """
    code: str = "MigrationError"

    def __init__(self, message: str = "", **details: Any):
        self.details = details
        super().__init__(message or self.code)


class ConfigurationError(MigrationError):
    """Construction-time misconfiguration. Fatal, never recoverable."""
    code = "ConfigurationError"


class AuthorizationError(MigrationError):
    """Caller lacks standing or rights for the requested operation."""
    code = "AuthorizationError"


class PreconditionError(MigrationError):
    """Request or escrow state does not allow the operation."""
    code = "PreconditionError"


class InvariantViolation(MigrationError):
    """A ledger call did not have exactly the expected effect."""
    code = "InvariantViolation"


class SafetyViolation(MigrationError):
    """Pause gate or reentrancy guard rejected the call."""
    code = "SafetyViolation"


# Configuration

class ZeroAddressError(ConfigurationError):
    code = "ZeroAddress"


class IdenticalAssetsError(ConfigurationError):
    code = "IdenticalAssets"


class InvalidSinkError(ConfigurationError):
    code = "InvalidSink"


# Authorization

class NotOwnerError(AuthorizationError):
    code = "NotOwner"


class InsufficientOldBalanceError(AuthorizationError):
    code = "InsufficientOldBalance"


class MissingApprovalError(AuthorizationError):
    code = "MissingApproval"


class NotAdministratorError(AuthorizationError):
    code = "NotAdministrator"


# Preconditions

class NewNotPreloadedError(PreconditionError):
    code = "NewNotPreloaded"


class ZeroAmountError(PreconditionError):
    code = "ZeroAmount"


class EmptyBatchError(PreconditionError):
    code = "EmptyBatch"


class BatchSizeExceededError(PreconditionError):
    code = "BatchSizeExceeded"


class BatchLengthMismatchError(PreconditionError):
    code = "BatchLengthMismatch"


class CannotRecoverProtectedAssetError(PreconditionError):
    code = "CannotRecoverProtectedAsset"


# Invariants

class OldTransferInvariantError(InvariantViolation):
    code = "OldTransferInvariant"


class NewTransferInvariantError(InvariantViolation):
    code = "NewTransferInvariant"


class TransferFailedError(InvariantViolation):
    code = "TransferFailed"


# Safety

class PausedError(SafetyViolation):
    code = "Paused"


class NotPausedError(SafetyViolation):
    code = "NotPaused"


class ReentrantCallError(SafetyViolation):
    code = "Reentrant"


# =============================================================================
# VALIDATION RESULT
# =============================================================================

@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise the single error, or ValidationErrors for several."""
        if self.is_valid:
            return
        if len(self.errors) == 1:
            raise self.errors[0]
        raise ValidationErrors(self.errors)

    def unwrap(self) -> Any:
        """Return the sanitized value or raise."""
        self.raise_if_invalid()
        return self.sanitized_value

    @classmethod
    def success(cls, sanitized_value: Any = None) -> 'ValidationResult':
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> 'ValidationResult':
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

ZERO_ADDRESS = "0x" + "0" * 40


class Validators:
    """Collection of input validators."""

    HEX40_PATTERN = re.compile(r'^0x[a-f0-9]{40}$')

    # Quantities are ledger base units, bounded like a uint256
    MAX_QUANTITY = 2 ** 256 - 1

    @classmethod
    def validate_address(cls, value: Any, field_name: str = "address") -> ValidationResult:
        """Validate a host address (0x + 40 hex), returning it lowercased."""
        if not isinstance(value, str):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected string, got {type(value).__name__}", value)
            ])

        lower = value.strip().lower()
        if not cls.HEX40_PATTERN.match(lower):
            return ValidationResult.failure([
                ValidationError(field_name, "Must be a valid address (0x + 40 hex)", value)
            ])

        return ValidationResult.success(lower)

    @classmethod
    def validate_quantity(cls, value: Any, field_name: str = "amount") -> ValidationResult:
        """
        Validate a non-negative integer quantity or token id.

        Zero is a valid *value* here; whether zero is acceptable is a
        precondition decided by the caller (see ``require_nonzero``).
        """
        # bool is an int subclass and never a meaningful quantity
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])

        errors = []
        if value < 0:
            errors.append(ValidationError(field_name, "Cannot be negative", value))
        if value > cls.MAX_QUANTITY:
            errors.append(ValidationError(field_name, f"Exceeds maximum ({cls.MAX_QUANTITY})", value))

        if errors:
            return ValidationResult.failure(errors)
        return ValidationResult.success(value)

    @classmethod
    def validate_quantities(
        cls,
        values: Sequence[Any],
        field_name: str = "amounts",
    ) -> ValidationResult:
        """Validate every element of a sequence of quantities."""
        if not isinstance(values, (list, tuple)):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected a sequence, got {type(values).__name__}", values)
            ])

        errors: List[ValidationError] = []
        sanitized: List[int] = []
        for index, value in enumerate(values):
            result = cls.validate_quantity(value, f"{field_name}[{index}]")
            if result.is_valid:
                sanitized.append(result.sanitized_value)
            else:
                errors.extend(result.errors)

        if errors:
            return ValidationResult.failure(errors)
        return ValidationResult.success(sanitized)


def require_address(value: Any, field_name: str = "address") -> str:
    """Validate an address and reject the null identity."""
    address = Validators.validate_address(value, field_name).unwrap()
    if address == ZERO_ADDRESS:
        raise ZeroAddressError(f"{field_name} cannot be the zero address", field=field_name)
    return address


def require_nonzero(amount: int, field_name: str = "amount") -> None:
    """Reject a zero quantity before any ledger interaction."""
    if amount == 0:
        raise ZeroAmountError(f"{field_name} must be greater than zero", field=field_name)


def check_batch_bounds(items: Sequence[Any], max_batch_size: int) -> None:
    """Reject empty batches and batches above the configured bound."""
    if len(items) == 0:
        raise EmptyBatchError("Batch must contain at least one element")
    if len(items) > max_batch_size:
        raise BatchSizeExceededError(
            f"Batch of {len(items)} exceeds maximum of {max_batch_size}",
            size=len(items),
            maximum=max_batch_size,
        )


# =============================================================================
# POST-CONDITION INVARIANTS
# =============================================================================

class InvariantChecker:
    """Enforces post-conditions of ledger calls."""

    @staticmethod
    def check_exact_delta(
        before: int,
        after: int,
        expected: int,
        incoming: bool,
        error_cls: type = InvariantViolation,
        subject: Optional[str] = None,
    ) -> None:
        """
        Ensure a holding moved by exactly ``expected``.

        ``incoming`` selects the direction: the watched account must have
        gained (True) or lost (False) exactly ``expected`` units.
        """
        delta = after - before if incoming else before - after
        if delta != expected:
            direction = "increase" if incoming else "decrease"
            raise error_cls(
                f"Expected {subject or 'holding'} to {direction} by {expected}, "
                f"observed {delta}",
                before=before,
                after=after,
                expected=expected,
            )
