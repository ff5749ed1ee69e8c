"""
Core tax/reward algorithms: the distribution engine, venues and the fallback router.
"""

from .distribution import (
    EngineState,
    Instruction,
    InstructionParams,
    StepResult,
    initial_state,
    step,
    step_or_raise,
)
from .errors import (
    AccountNotEmptyError,
    ArithmeticOverflowError,
    AuthorizationError,
    ErrorCode,
    ExternalCallError,
    InsufficientVaultError,
    InvariantViolationError,
    PausedError,
    Rejection,
    RewardEngineError,
    ValidationError,
)
from .routing import SwapReceipt, attempt as route_swap
from .venues import ConstantProductVenue, FixedPriceVenue, Venue, VenueKind, venue_from_dict

__all__ = [
    "EngineState",
    "Instruction",
    "InstructionParams",
    "StepResult",
    "initial_state",
    "step",
    "step_or_raise",
    "AccountNotEmptyError",
    "ArithmeticOverflowError",
    "AuthorizationError",
    "ErrorCode",
    "ExternalCallError",
    "InsufficientVaultError",
    "InvariantViolationError",
    "PausedError",
    "Rejection",
    "RewardEngineError",
    "ValidationError",
    "SwapReceipt",
    "route_swap",
    "ConstantProductVenue",
    "FixedPriceVenue",
    "Venue",
    "VenueKind",
    "venue_from_dict",
]
