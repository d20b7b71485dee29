# Core calculation engine
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)


class StatisticalStrategy(ABC):
    """Base class for every registered calculation"""

    @abstractmethod
    def calculate(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        """Run the calculation on a frame with a 'score' column"""

    @abstractmethod
    def validate_input(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        """Return {'is_valid', 'errors', 'warnings', 'stats'}"""

    @abstractmethod
    def get_algorithm_info(self) -> Dict[str, str]:
        """Describe the algorithm and its version"""


class CalculationEngine:
    """Statistics calculation engine"""

    def __init__(self):
        self._strategies: Dict[str, StatisticalStrategy] = {}

    def register_strategy(self, name: str, strategy: StatisticalStrategy):
        """Register a strategy instance under a name"""
        if not isinstance(strategy, StatisticalStrategy):
            raise ValueError(f"Strategy {name} must be a StatisticalStrategy instance")
        self._strategies[name] = strategy
        logger.debug(f"Registered strategy on engine: {name}")

    def get_registered_strategies(self) -> List[str]:
        return list(self._strategies.keys())

    def get_strategy(self, name: str) -> StatisticalStrategy:
        if name not in self._strategies:
            raise ValueError(f"Strategy not found: {name}")
        return self._strategies[name]

    def calculate(self, strategy_name: str, data: pd.DataFrame,
                  config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Validate the input and run a registered strategy

        Args:
            strategy_name: registered strategy name
            data: frame with at least a 'score' column
            config: strategy parameters

        Returns:
            The strategy result with '_meta' timing information attached
        """
        config = config or {}
        strategy = self.get_strategy(strategy_name)

        validation = strategy.validate_input(data, config)
        if not validation['is_valid']:
            raise ValueError(f"Input validation failed for {strategy_name}: {validation['errors']}")
        for warning in validation.get('warnings', []):
            logger.warning(f"{strategy_name}: {warning}")

        start_time = time.perf_counter()
        result = strategy.calculate(data, config)
        duration = time.perf_counter() - start_time

        result['_meta'] = {
            'strategy': strategy_name,
            'algorithm': strategy.get_algorithm_info(),
            'duration_ms': round(duration * 1000, 3),
            'warnings': validation.get('warnings', []),
        }
        logger.debug(f"Strategy {strategy_name} finished in {duration * 1000:.3f}ms")
        return result


_engine: Optional[CalculationEngine] = None


def get_calculation_engine() -> CalculationEngine:
    """Return the process-wide engine"""
    global _engine
    if _engine is None:
        _engine = CalculationEngine()
    return _engine
