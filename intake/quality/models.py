from dataclasses import dataclass, field
from typing import Literal

from intake.workflow.models import DocumentType

Severity = Literal["info", "warning", "critical"]
GateStatus = Literal["passed", "needs_review"]


@dataclass(frozen=True)
class QualityIssue:
    """One problem found while assessing a document."""

    id: str
    severity: Severity
    message: str
    recommendation: str


@dataclass
class ChecklistItem:
    """Expected field for a document type and whether it looks readable."""

    id: str
    label: str
    completed: bool = True


@dataclass
class QualityAssessmentResult:
    """Output of the quality gate scorer."""

    score: int
    suggested_type: DocumentType
    page_count: int = 1
    issues: list[QualityIssue] = field(default_factory=list)
    checklist: list[ChecklistItem] = field(default_factory=list)


@dataclass(frozen=True)
class QualityGateDecision:
    """Whether a document may proceed without being prioritized for review."""

    status: GateStatus
    reasons: list[QualityIssue] = field(default_factory=list)
