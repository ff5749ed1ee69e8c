"""
Integration layer: deployment config, signed instructions, and the ledger runtime.
"""

from .config_file import Deployment, load_deployment, parse_deployment
from .runtime import LedgerRuntime
from .signing import SignedInstruction, sign_instruction, verify_instruction

__all__ = [
    "Deployment",
    "load_deployment",
    "parse_deployment",
    "LedgerRuntime",
    "SignedInstruction",
    "sign_instruction",
    "verify_instruction",
]
