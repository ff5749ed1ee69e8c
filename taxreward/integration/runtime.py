"""
In-process ledger runtime for the distribution engine.

``LedgerRuntime`` plays the part of the surrounding ledger:
- it serializes instructions (one at a time, under a lock),
- it commits a step's post-state only when the step was accepted,
- it verifies signed envelopes before handing params to the engine,
- it exposes the read-only queries the automation layer polls.

The engine itself stays pure; nothing here changes accounting semantics.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..core.distribution import (
    EngineState,
    InstructionParams,
    StepResult,
    fund_wallet,
    initial_state,
    set_venue,
    step,
)
from ..core.distribution.math import owed_rewards
from ..core.errors import AuthorizationError, ErrorCode, Rejection
from ..core.venues import Venue
from ..state.state_root import compute_state_root
from .config_file import Deployment, chain_id_from_env
from .signing import SignedInstruction, verify_instruction

_log = logging.getLogger(__name__)


class LedgerRuntime:
    def __init__(
        self,
        state: Optional[EngineState] = None,
        *,
        chain_id: Optional[str] = None,
        require_signatures: bool = False,
    ) -> None:
        self._state = state if state is not None else initial_state()
        self._chain_id = chain_id if chain_id is not None else chain_id_from_env()
        self._require_signatures = require_signatures
        self._lock = threading.Lock()

    @classmethod
    def from_deployment(cls, deployment: Deployment, **kwargs) -> "LedgerRuntime":
        """Create a runtime and run ``initialize`` for ``deployment`` (signed by its owner)."""
        runtime = cls(**kwargs)
        result = runtime._apply(deployment.initialize_params())
        if not result.accepted:
            raise ValueError(f"deployment rejected: {result.rejection}")
        return runtime

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def chain_id(self) -> str:
        return self._chain_id

    def state_root(self) -> str:
        return compute_state_root(self._state)

    # -- Instruction submission -------------------------------------------------

    def _apply(self, params: InstructionParams) -> StepResult:
        with self._lock:
            result = step(self._state, params)
            if result.accepted:
                assert result.state is not None
                self._state = result.state
                _log.info("committed %s by %s", params.instruction.value, params.signer)
            else:
                _log.info("rejected %s by %s: %s", params.instruction.value, params.signer, result.rejection)
            return result

    def submit(self, params: InstructionParams) -> StepResult:
        """Submit an instruction whose signer was authenticated by the caller."""
        if self._require_signatures:
            return StepResult(
                accepted=False,
                rejection=Rejection(ErrorCode.UNAUTHORIZED, "unsigned instructions disabled"),
            )
        return self._apply(params)

    def submit_signed(self, envelope: SignedInstruction) -> StepResult:
        try:
            params = verify_instruction(envelope, chain_id=self._chain_id)
        except AuthorizationError as exc:
            _log.warning("signature rejected for %s: %s", envelope.params.instruction.value, exc)
            return StepResult(accepted=False, rejection=exc.to_rejection())
        return self._apply(params)

    def simulate(self, params: InstructionParams) -> StepResult:
        """Run ``params`` against the current state without committing."""
        with self._lock:
            return step(self._state, params)

    # -- Queries -----------------------------------------------------------------

    def pending_rewards(self, holder: str) -> int:
        """Reward ``holder`` could claim right now (0 without a record)."""
        state = self._state
        user = state.users.get(holder)
        if user is None:
            return 0
        return owed_rewards(user.snapshot, state.global_state.cum_reward_per_unit, user.last_cum)

    # -- External account hooks ----------------------------------------------

    def fund_wallet(self, holder: str, *, tokens: int = 0, currency: int = 0) -> None:
        with self._lock:
            self._state = fund_wallet(self._state, holder, tokens=tokens, currency=currency)

    def set_venue(self, venue: Venue) -> None:
        with self._lock:
            self._state = set_venue(self._state, venue)
