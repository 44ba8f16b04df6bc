# settler/verification/__init__.py
# Evidence verification and the determinism gate.
#
# CI GATE:
#   python -m settler.verification.determinism_gate

from .manifest_verifier import (
    VerificationResult,
    hash_file,
    verify_manifest,
    verify_run_pack,
)
from .determinism_gate import GateResult, run_gate
from .determinism_gate import main as run_ci_gate

__all__ = [
    "VerificationResult",
    "hash_file",
    "verify_manifest",
    "verify_run_pack",
    "GateResult",
    "run_gate",
    "run_ci_gate",
]
