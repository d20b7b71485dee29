# Grade-cutoff estimation engine
from .engine import CalculationEngine, get_calculation_engine
from .enums import GradingSystem, ExamType, PredictionSource
from .formulas import robust_mean, robust_std_dev, legacy_robust_mean, legacy_robust_std_dev
from .calculators import (
    register_default_strategies,
    initialize_calculation_system
)
from .calculators.cutoff_calculator import percentile_rank, compute_cutoffs, lookup_grade
from .calculators.grade_calculator import (
    get_tier_catalog,
    calculate_absolute_grade,
    batch_calculate_grades
)
from .calculators.integrated_predictor import (
    MidtermSummary,
    RealMidterm,
    SimulatedMidterm,
    predict_integrated_grades,
    predict_from_source
)
from .calculators.refined_predictor import (
    predict_refined_integrated_grades,
    refine_simulated_prediction
)

__all__ = [
    'CalculationEngine',
    'get_calculation_engine',
    'GradingSystem',
    'ExamType',
    'PredictionSource',
    'robust_mean',
    'robust_std_dev',
    'legacy_robust_mean',
    'legacy_robust_std_dev',
    'register_default_strategies',
    'initialize_calculation_system',
    'percentile_rank',
    'compute_cutoffs',
    'lookup_grade',
    'get_tier_catalog',
    'calculate_absolute_grade',
    'batch_calculate_grades',
    'MidtermSummary',
    'RealMidterm',
    'SimulatedMidterm',
    'predict_integrated_grades',
    'predict_from_source',
    'predict_refined_integrated_grades',
    'refine_simulated_prediction'
]
