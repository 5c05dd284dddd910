"""Question, capture result and step outcome records."""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class QuestionRecord:
    id: str
    text: str
    expected_product: str = ""
    category: str = ""
    dimension: str = ""
    metadata: dict = field(default_factory=dict, hash=False, compare=False)

    @classmethod
    def from_dict(cls, data: dict) -> "QuestionRecord":
        """Accept both our own keys and the camelCase keys of older question files."""
        if not data.get("id") or not data.get("text"):
            raise ValueError(f"question record needs 'id' and 'text': {data!r}")
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            expected_product=data.get("expected_product", data.get("expectedProduct", "")) or "",
            category=data.get("category", data.get("productCategory", "")) or "",
            dimension=data.get("dimension", "") or "",
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class ExtractionMethod(str, Enum):
    PRIMARY_SELECTOR = "primary-selector"
    PAGE_SCAN = "page-scan"
    HEURISTIC_FALLBACK = "heuristic-fallback"
    ERROR_FALLBACK = "error-fallback"


class Severity(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"  # proceed with a warning
    FATAL = "fatal"  # this question cannot continue


@dataclass(frozen=True)
class StepOutcome:
    step: str
    severity: Severity = Severity.OK
    message: str = ""
    detail: Optional[str] = None  # e.g. chosen selector or strategy name

    @classmethod
    def ok(cls, step: str, detail: Optional[str] = None) -> "StepOutcome":
        return cls(step=step, detail=detail)

    @classmethod
    def degraded(cls, step: str, message: str) -> "StepOutcome":
        return cls(step=step, severity=Severity.DEGRADED, message=message)

    @classmethod
    def fatal(cls, step: str, message: str) -> "StepOutcome":
        return cls(step=step, severity=Severity.FATAL, message=message)

    @property
    def is_fatal(self) -> bool:
        return self.severity is Severity.FATAL


@dataclass(frozen=True)
class CaptureResult:
    question_id: str
    response_text: str
    captured_at: str
    extraction_method: ExtractionMethod
    response_time_ms: Optional[int]
    error: Optional[str] = None
    completion_timed_out: bool = False
    question: str = ""
    expected_product: str = ""
    category: str = ""
    dimension: str = ""
    session: str = ""
    warnings: tuple = ()
    metadata: dict = field(default_factory=dict, hash=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(
        cls,
        question: QuestionRecord,
        text: str,
        method: ExtractionMethod,
        response_time_ms: int,
        completion_timed_out: bool = False,
        session: str = "",
        warnings: tuple = (),
        metadata: Optional[dict] = None,
    ) -> "CaptureResult":
        return cls(
            question_id=question.id,
            response_text=text,
            captured_at=utc_now_iso(),
            extraction_method=method,
            response_time_ms=response_time_ms,
            completion_timed_out=completion_timed_out,
            question=question.text,
            expected_product=question.expected_product,
            category=question.category,
            dimension=question.dimension,
            session=session,
            warnings=tuple(warnings),
            metadata={**question.metadata, **(metadata or {})},
        )

    @classmethod
    def failure(
        cls,
        question: QuestionRecord,
        error: str,
        response_time_ms: Optional[int] = None,
        session: str = "",
        warnings: tuple = (),
    ) -> "CaptureResult":
        return cls(
            question_id=question.id,
            response_text="",
            captured_at=utc_now_iso(),
            extraction_method=ExtractionMethod.ERROR_FALLBACK,
            response_time_ms=response_time_ms,
            error=error,
            question=question.text,
            expected_product=question.expected_product,
            category=question.category,
            dimension=question.dimension,
            session=session,
            warnings=tuple(warnings),
            metadata=dict(question.metadata),
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["extraction_method"] = self.extraction_method.value
        d["warnings"] = list(self.warnings)
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "CaptureResult":
        return cls(
            question_id=str(data["question_id"]),
            response_text=data.get("response_text") or "",
            captured_at=data.get("captured_at") or "",
            extraction_method=ExtractionMethod(data.get("extraction_method", ExtractionMethod.ERROR_FALLBACK.value)),
            response_time_ms=data.get("response_time_ms"),
            error=data.get("error"),
            completion_timed_out=bool(data.get("completion_timed_out", False)),
            question=data.get("question", ""),
            expected_product=data.get("expected_product", ""),
            category=data.get("category", ""),
            dimension=data.get("dimension", ""),
            session=data.get("session", ""),
            warnings=tuple(data.get("warnings") or ()),
            metadata=dict(data.get("metadata") or {}),
        )


def as_result_dicts(results: list[Any]) -> list[dict]:
    """Normalize CaptureResult objects or already-serialized dicts to dicts."""
    return [r.to_dict() if isinstance(r, CaptureResult) else dict(r) for r in results]
