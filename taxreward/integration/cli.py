"""Command-line simulator: replay a sequence of instructions against a deployment.

Example:

    taxreward-sim --config config/deployment.example.yaml \
        --fund alice=600000:10 --fund bob=400000:10 \
        --op trade:alice:1000 --op trade:bob:1000 --op claim:alice --op pause

Operations run in the order given. Each prints one JSON line; the final line
carries the state root and accumulator.
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Optional, Sequence

from ..core.distribution import Instruction, InstructionParams
from .config_file import load_deployment
from .runtime import LedgerRuntime


def _parse_fund(raw: str) -> tuple[str, int, int]:
    holder, sep, amounts = raw.partition("=")
    if not sep or not holder:
        raise argparse.ArgumentTypeError(f"expected holder=tokens[:currency], got {raw!r}")
    tokens, _, currency = amounts.partition(":")
    try:
        return holder, int(tokens), int(currency or 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid amounts in {raw!r}") from exc


def _op_params(raw: str, owner: str, runtime: LedgerRuntime) -> InstructionParams:
    parts = raw.split(":")
    name = parts[0]
    try:
        if name == "trade":
            return InstructionParams(
                instruction=Instruction.TAXED_OPERATION_AND_DISTRIBUTE,
                signer=parts[1],
                amount_in=int(parts[2]),
                min_amount_out=int(parts[3]) if len(parts) > 3 else 0,
            )
        if name == "claim":
            return InstructionParams(instruction=Instruction.CLAIM_REWARDS, signer=parts[1])
        if name == "close":
            return InstructionParams(instruction=Instruction.CLOSE_USER_INFO, signer=parts[1])
        if name == "supply":
            return InstructionParams(
                instruction=Instruction.UPDATE_TOTAL_SUPPLY, signer=owner, total_supply=int(parts[1]),
            )
        if name in ("pause", "unpause", "rate"):
            cfg = runtime.state.config
            assert cfg is not None
            rate = int(parts[1]) if name == "rate" else cfg.tax_rate_bps
            paused = cfg.paused if name == "rate" else name == "pause"
            return InstructionParams(
                instruction=Instruction.UPDATE_CONFIG, signer=owner, tax_rate_bps=rate, paused=paused,
            )
    except (IndexError, ValueError) as exc:
        raise ValueError(f"malformed op {raw!r}") from exc
    raise ValueError(f"unknown op {name!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taxreward-sim", description="Tax/reward distribution simulator")
    parser.add_argument("--config", required=True, help="Deployment YAML file")
    parser.add_argument("--fund", action="append", default=[], type=_parse_fund,
                        help="holder=tokens[:currency] (repeatable)")
    parser.add_argument("--op", action="append", default=[],
                        help="trade:H:AMOUNT[:MIN_OUT] | claim:H | close:H | supply:N | rate:BPS | pause | unpause")
    parser.add_argument("--chain-id", default=None, help="Overrides TAXREWARD_CHAIN_ID")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    deployment = load_deployment(args.config)
    runtime = LedgerRuntime.from_deployment(deployment, chain_id=args.chain_id)
    for holder, tokens, currency in args.fund:
        runtime.fund_wallet(holder, tokens=tokens, currency=currency)

    failed = False
    for raw in args.op:
        try:
            params = _op_params(raw, deployment.owner, runtime)
        except ValueError as exc:
            print(json.dumps({"op": raw, "error": str(exc)}))
            return 2
        result = runtime.submit(params)
        line: dict = {"op": raw, "accepted": result.accepted}
        if result.accepted:
            assert result.effect is not None
            effect = result.effect
            line.update(
                event=effect.event.value,
                tax=effect.tax,
                amount_out=effect.amount_out,
                amount_paid=effect.amount_paid,
                venue_id=effect.venue_id,
                venue_failures=[list(f) for f in effect.venue_failures],
            )
        else:
            failed = True
            line["rejection"] = str(result.rejection)
        print(json.dumps(line, sort_keys=True))

    gs = runtime.state.global_state
    print(json.dumps({
        "state_root": runtime.state_root(),
        "cum_reward_per_unit": str(gs.cum_reward_per_unit),
        "reward_vault": runtime.state.reward_vault.balance,
        "pending": {h: runtime.pending_rewards(h) for h in sorted(runtime.state.users)},
    }, sort_keys=True))
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
