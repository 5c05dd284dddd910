# Brand Concierge Evaluator – public API

from .config import AppConfig, BrowserConfig, CaptureSettings, ExecutionConfig, OutputConfig, ProductSource
from .controller import SessionController
from .detector import CompletionState, await_completion, evaluate_signals
from .extractors import choose_response, extract_response
from .metrics import ResultSink, RunStats, load_results, validate_checkpoint
from .models import CaptureResult, ExtractionMethod, QuestionRecord, Severity, StepOutcome
from .runner import BatchScheduler, run_capture, setup_logging
from .session import PlaywrightSessionFactory, SessionHandle, session_scope

__all__ = [
    "AppConfig",
    "BrowserConfig",
    "CaptureSettings",
    "ExecutionConfig",
    "OutputConfig",
    "ProductSource",
    "SessionController",
    "CompletionState",
    "await_completion",
    "evaluate_signals",
    "choose_response",
    "extract_response",
    "ResultSink",
    "RunStats",
    "load_results",
    "validate_checkpoint",
    "CaptureResult",
    "ExtractionMethod",
    "QuestionRecord",
    "Severity",
    "StepOutcome",
    "BatchScheduler",
    "run_capture",
    "setup_logging",
    "PlaywrightSessionFactory",
    "SessionHandle",
    "session_scope",
]
