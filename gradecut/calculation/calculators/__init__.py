# Calculator modules
from .strategy_registry import (
    CalculationStrategyRegistry,
    register_default_strategies,
    initialize_calculation_system
)
from .grade_calculator import GradeTier, GradeTierConfig, CSAT_TIERS, RELATIVE_5_TIERS
from .cutoff_calculator import CutoffResult, CutoffStrategy, MIN_CUTOFF_SAMPLE_SIZE
from .integrated_predictor import IntegratedPrediction, IntegratedPredictionStrategy
from .refined_predictor import RefinedPrediction
from .item_calculator import ItemAnalysisStrategy

__all__ = [
    'CalculationStrategyRegistry',
    'register_default_strategies',
    'initialize_calculation_system',
    'GradeTier',
    'GradeTierConfig',
    'CSAT_TIERS',
    'RELATIVE_5_TIERS',
    'CutoffResult',
    'CutoffStrategy',
    'MIN_CUTOFF_SAMPLE_SIZE',
    'IntegratedPrediction',
    'IntegratedPredictionStrategy',
    'RefinedPrediction',
    'ItemAnalysisStrategy'
]
