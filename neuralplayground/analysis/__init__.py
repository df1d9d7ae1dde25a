"""Evaluation analytics over a labelled sample set."""

from .ablation import AblationResult, AblationStudy, run_ablation_study
from .boundary import (
    BOUNDARY_MARGIN,
    BoundaryCell,
    DecisionBoundaryResult,
    compute_decision_boundary,
    exemplar_pair_axis,
)
from .cadence import Cadence, PeriodicAnalysis
from .confusion import ConfusionData, compute_confusion_matrix, confusion_from_predictions
from .gradient_flow import (
    GradientFlowSnapshot,
    LayerGradientStats,
    classify_health,
    measure_gradient_flow,
)
from .misfits import Misfit, MisfitSummary, compute_misfit_summary, find_misfits

__all__ = [
    "AblationResult",
    "AblationStudy",
    "BOUNDARY_MARGIN",
    "BoundaryCell",
    "Cadence",
    "ConfusionData",
    "DecisionBoundaryResult",
    "GradientFlowSnapshot",
    "LayerGradientStats",
    "Misfit",
    "MisfitSummary",
    "PeriodicAnalysis",
    "classify_health",
    "compute_confusion_matrix",
    "compute_decision_boundary",
    "compute_misfit_summary",
    "confusion_from_predictions",
    "exemplar_pair_axis",
    "find_misfits",
    "measure_gradient_flow",
    "run_ablation_study",
]
