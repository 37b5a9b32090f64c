from .assembler import assemble
from .models import (
    Call,
    ChainExecution,
    ChainExecutionStatus,
    ChainOperation,
    ExecutionHandle,
    ExecutionReport,
    FeeBreakdown,
    FeeToken,
    Quote,
    SignedExecution,
    SubmissionState,
    Supertransaction,
)
from .operation_builder import CallIntent, IntentAction, OperationBuilder
from .quote_client import QuoteExecutionClient, RelayClient, SubmissionAttempt, verify_quote_binding
from .signature import DIRECT_TO_MEE, EXECUTION_MODE_PREFIXES, format_signature

__all__ = [
    "assemble",
    "Call",
    "ChainExecution",
    "ChainExecutionStatus",
    "ChainOperation",
    "ExecutionHandle",
    "ExecutionReport",
    "FeeBreakdown",
    "FeeToken",
    "Quote",
    "SignedExecution",
    "SubmissionState",
    "Supertransaction",
    "CallIntent",
    "IntentAction",
    "OperationBuilder",
    "QuoteExecutionClient",
    "RelayClient",
    "SubmissionAttempt",
    "verify_quote_binding",
    "DIRECT_TO_MEE",
    "EXECUTION_MODE_PREFIXES",
    "format_signature",
]
