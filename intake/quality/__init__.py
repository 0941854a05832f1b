from intake.quality.models import QualityAssessmentResult, QualityGateDecision
from intake.quality.scorer import QualityAssessor, evaluate_quality_gate

__all__ = [
    "QualityAssessmentResult",
    "QualityAssessor",
    "QualityGateDecision",
    "evaluate_quality_gate",
]
