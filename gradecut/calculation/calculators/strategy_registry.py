# Strategy registry
import logging
from typing import Dict, Type, List, Any

from ..engine import StatisticalStrategy, CalculationEngine, get_calculation_engine
from ..formulas import RobustStatisticsStrategy
from .cutoff_calculator import CutoffStrategy
from .integrated_predictor import IntegratedPredictionStrategy
from .item_calculator import ItemAnalysisStrategy

logger = logging.getLogger(__name__)


class CalculationStrategyRegistry:
    """Calculation strategy registry"""

    def __init__(self):
        self._strategies: Dict[str, Type[StatisticalStrategy]] = {}
        self._descriptions: Dict[str, str] = {}

    def register(self, name: str, strategy_class: Type[StatisticalStrategy], description: str = ""):
        """Register a strategy class"""
        if not isinstance(strategy_class, type) or not issubclass(strategy_class, StatisticalStrategy):
            raise ValueError(f"Strategy class {strategy_class!r} must subclass StatisticalStrategy")

        self._strategies[name] = strategy_class
        self._descriptions[name] = description or strategy_class.__doc__ or "No description"
        logger.info(f"Registered calculation strategy: {name} ({strategy_class.__name__})")

    def get_strategy(self, name: str) -> Type[StatisticalStrategy]:
        if name not in self._strategies:
            raise ValueError(f"Strategy not found: {name}")
        return self._strategies[name]

    def create_strategy(self, name: str) -> StatisticalStrategy:
        return self.get_strategy(name)()

    def list_strategies(self) -> List[Dict[str, str]]:
        return [
            {
                'name': name,
                'class_name': strategy_class.__name__,
                'description': self._descriptions[name]
            }
            for name, strategy_class in self._strategies.items()
        ]

    def is_registered(self, name: str) -> bool:
        return name in self._strategies

    def unregister(self, name: str) -> bool:
        if name in self._strategies:
            del self._strategies[name]
            del self._descriptions[name]
            logger.info(f"Unregistered calculation strategy: {name}")
            return True
        return False

    def register_to_engine(self, engine: CalculationEngine):
        """Register an instance of every strategy on the engine"""
        for name in self._strategies:
            engine.register_strategy(name, self.create_strategy(name))
            logger.debug(f"Strategy {name} registered on engine")


_registry = CalculationStrategyRegistry()


def get_registry() -> CalculationStrategyRegistry:
    return _registry


def register_strategy(name: str, strategy_class: Type[StatisticalStrategy], description: str = ""):
    _registry.register(name, strategy_class, description)


def register_default_strategies():
    """Register the built-in strategies and push them to the global engine"""
    register_strategy(
        'robust_statistics',
        RobustStatisticsStrategy,
        'Bias-corrected mean and standard deviation for self-reported scores'
    )

    register_strategy(
        'cutoffs',
        CutoffStrategy,
        'Nearest-rank grade cutoffs for the CSAT and RELATIVE_5 catalogs'
    )

    register_strategy(
        'integrated_prediction',
        IntegratedPredictionStrategy,
        'Blended midterm/final cutoffs and the final score required per grade'
    )

    register_strategy(
        'item_analysis',
        ItemAnalysisStrategy,
        'Wrong-answer rate per multiple-choice question and score ratio per subjective question'
    )

    engine = get_calculation_engine()
    _registry.register_to_engine(engine)
    logger.info(f"Registered {len(_registry.list_strategies())} strategies on the calculation engine")


def initialize_calculation_system() -> CalculationEngine:
    """Register the default strategies and return the ready engine"""
    logger.info("Initializing calculation system...")
    register_default_strategies()

    engine = get_calculation_engine()
    registered_strategies = engine.get_registered_strategies()
    logger.info(f"Calculation system ready with {len(registered_strategies)} strategies: {registered_strategies}")
    return engine


def get_strategy_info(name: str) -> Dict[str, Any]:
    if not _registry.is_registered(name):
        raise ValueError(f"Strategy {name} is not registered")

    strategy_instance = _registry.create_strategy(name)
    return {
        'name': name,
        'description': _registry._descriptions[name],
        'class_name': _registry._strategies[name].__name__,
        'algorithm_info': strategy_instance.get_algorithm_info()
    }


def list_all_strategies() -> List[Dict[str, Any]]:
    """Detailed info for every registered strategy"""
    strategies = []
    for strategy_info in _registry.list_strategies():
        try:
            strategies.append(get_strategy_info(strategy_info['name']))
        except Exception as e:
            logger.error(f"Failed to describe strategy {strategy_info['name']}: {e}")
            strategies.append(strategy_info)
    return strategies
