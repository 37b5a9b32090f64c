"""Execution-mode tagging of owner signatures."""

from __future__ import annotations

from typing import Dict

from ..errors import ValidationError

DIRECT_TO_MEE = "direct-to-mee"
FUSION_PERMIT = "fusion-permit"
FUSION_ONCHAIN = "fusion-onchain"

EXECUTION_MODE_PREFIXES: Dict[str, str] = {
    DIRECT_TO_MEE: "0x177eee00",
    FUSION_PERMIT: "0x177eee01",
    FUSION_ONCHAIN: "0x177eee02",
}


def validate_execution_mode(mode: str) -> str:
    if mode not in EXECUTION_MODE_PREFIXES:
        raise ValidationError(
            f"Unknown execution mode {mode!r}; expected one of {sorted(EXECUTION_MODE_PREFIXES)}"
        )
    return mode


def format_signature(signature: str, execution_mode: str) -> str:
    """Prefix a 0x signature with the relay's tag for ``execution_mode``."""
    prefix = EXECUTION_MODE_PREFIXES[validate_execution_mode(execution_mode)]
    body = signature[2:] if signature.startswith("0x") else signature
    return prefix + body
