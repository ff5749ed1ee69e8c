"""Failure taxonomy for the tax/reward engine.

`step()` reports failures as a ``Rejection`` (an ``ErrorCode`` plus detail);
``step_or_raise()`` and the internal helpers use the exception classes below.
Every exception carries the ``ErrorCode`` it maps to.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    INVALID_INSTRUCTION = "InvalidInstruction"
    ALREADY_INITIALIZED = "AlreadyInitialized"
    NOT_INITIALIZED = "NotInitialized"
    INVALID_RATE = "InvalidRate"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_VENUE_LIST = "InvalidVenueList"
    INVALID_SUPPLY = "InvalidSupply"
    INVALID_MINT = "InvalidMint"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    UNAUTHORIZED = "Unauthorized"
    PAUSED = "Paused"
    SWAP_FAILED = "SwapFailed"
    ARITHMETIC_ERROR = "ArithmeticError"
    INVARIANT_VIOLATION = "InvariantViolation"
    INSUFFICIENT_VAULT = "InsufficientVault"
    ACCOUNT_NOT_EMPTY = "AccountNotEmpty"


@dataclass(frozen=True)
class Rejection:
    code: ErrorCode
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.code.value}: {self.detail}" if self.detail else self.code.value


class RewardEngineError(Exception):
    """Base class. Subclasses fix ``code`` unless it is passed explicitly."""

    code: ErrorCode = ErrorCode.INVARIANT_VIOLATION

    def __init__(self, detail: str = "", *, code: ErrorCode | None = None) -> None:
        if code is not None:
            self.code = code
        self.detail = detail
        super().__init__(f"{self.code.value}: {detail}" if detail else self.code.value)

    def to_rejection(self) -> Rejection:
        return Rejection(code=self.code, detail=self.detail)


class ValidationError(RewardEngineError):
    """Malformed input or a missing/duplicate account; raised before any mutation."""

    code = ErrorCode.INVALID_AMOUNT


class AuthorizationError(RewardEngineError):
    code = ErrorCode.UNAUTHORIZED


class PausedError(RewardEngineError):
    code = ErrorCode.PAUSED


class ExternalCallError(RewardEngineError):
    """Every configured venue failed; ``failures`` holds ``(venue_id, reason)`` pairs."""

    code = ErrorCode.SWAP_FAILED

    def __init__(self, failures: list[tuple[str, str]] | None = None) -> None:
        self.failures = list(failures or [])
        detail = "; ".join(f"{vid}={reason}" for vid, reason in self.failures) or "no venues"
        super().__init__(detail)


class ArithmeticOverflowError(RewardEngineError, ArithmeticError):
    code = ErrorCode.ARITHMETIC_ERROR


class InvariantViolationError(RewardEngineError):
    """A post-state broke an invariant. Signals a defect, never a user error."""

    code = ErrorCode.INVARIANT_VIOLATION

    def __init__(self, violations: list[str], *, detail: str = "") -> None:
        self.violations = list(violations)
        text = ",".join(self.violations)
        super().__init__(f"{text} ({detail})" if detail else text)


class InsufficientVaultError(RewardEngineError):
    code = ErrorCode.INSUFFICIENT_VAULT


class AccountNotEmptyError(RewardEngineError):
    code = ErrorCode.ACCOUNT_NOT_EMPTY


_EXCEPTION_FOR_CODE: dict[ErrorCode, type[RewardEngineError]] = {
    ErrorCode.UNAUTHORIZED: AuthorizationError,
    ErrorCode.PAUSED: PausedError,
    ErrorCode.ARITHMETIC_ERROR: ArithmeticOverflowError,
    ErrorCode.INSUFFICIENT_VAULT: InsufficientVaultError,
    ErrorCode.ACCOUNT_NOT_EMPTY: AccountNotEmptyError,
}


def exception_for(rejection: Rejection) -> RewardEngineError:
    """Rebuild the typed exception for a rejection returned by ``step()``."""
    if rejection.code is ErrorCode.SWAP_FAILED:
        exc: RewardEngineError = ExternalCallError()
        exc.detail = rejection.detail
        exc.args = (str(rejection),)
        return exc
    if rejection.code is ErrorCode.INVARIANT_VIOLATION:
        return InvariantViolationError(rejection.detail.split(",") if rejection.detail else [])
    cls = _EXCEPTION_FOR_CODE.get(rejection.code)
    if cls is None:
        return ValidationError(rejection.detail, code=rejection.code)
    return cls(rejection.detail)
