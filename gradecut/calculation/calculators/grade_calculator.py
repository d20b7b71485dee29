# Grading tier catalog and absolute-band grading
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ..enums import GradingSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradeTier:
    """One tier of a percentile catalog"""
    grade: int                      # 1 = best
    cumulative_percentile: float    # top N% of the sample, in (0, 100]
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'grade': self.grade,
            'cumulative_percentile': self.cumulative_percentile,
            'label': self.label,
        }


def _build_catalog(thresholds) -> Tuple[GradeTier, ...]:
    return tuple(
        GradeTier(grade=index + 1, cumulative_percentile=float(threshold), label=f"Top {threshold}%")
        for index, threshold in enumerate(thresholds)
    )


# Thresholds must be strictly increasing and end at 100. Catalogs that break
# this are not checked; cutoffs computed from them are undefined.
CSAT_TIERS = _build_catalog([4, 11, 23, 40, 60, 77, 89, 96, 100])
RELATIVE_5_TIERS = _build_catalog([10, 34, 66, 90, 100])


class GradeTierConfig:
    """Grading scheme configuration"""

    CATALOGS = {
        GradingSystem.CSAT: CSAT_TIERS,
        GradingSystem.RELATIVE_5: RELATIVE_5_TIERS,
    }

    # Absolute bands as a share of the exam point total
    ABSOLUTE_THRESHOLDS = {
        'A': 0.80,
        'B': 0.60,
        'C': 0.00,
    }

    @classmethod
    def normalize(cls, grading_system: Union[GradingSystem, str, None]) -> GradingSystem:
        """Parse a grading system, defaulting to CSAT"""
        if grading_system is None:
            return GradingSystem.CSAT
        if isinstance(grading_system, GradingSystem):
            return grading_system
        try:
            return GradingSystem(str(grading_system).upper())
        except ValueError:
            logger.warning(f"Unknown grading system {grading_system}, using CSAT")
            return GradingSystem.CSAT

    @classmethod
    def is_percentile_based(cls, grading_system: Union[GradingSystem, str, None]) -> bool:
        return cls.normalize(grading_system) in cls.CATALOGS

    @classmethod
    def get_catalog(cls, grading_system: Union[GradingSystem, str, None]) -> Tuple[GradeTier, ...]:
        """Percentile catalog for a scheme; ABSOLUTE borrows the 9-tier catalog"""
        return cls.CATALOGS.get(cls.normalize(grading_system), CSAT_TIERS)

    @classmethod
    def worst_grade(cls, catalog) -> int:
        return max(tier.grade for tier in catalog)


def get_tier_catalog(grading_system: Union[GradingSystem, str, None]) -> Tuple[GradeTier, ...]:
    return GradeTierConfig.get_catalog(grading_system)


def exam_point_total(mcq_points=(), subjective_points=()) -> float:
    """Sum of all question points, rounded to 2 decimals"""
    return round(float(sum(mcq_points)) + float(sum(subjective_points)), 2)


def calculate_absolute_grade(score: float, total_points: float) -> Dict[str, Any]:
    """
    Absolute band for one score

    Args:
        score: the student's total
        total_points: the exam's point total

    Returns:
        {'grade', 'score_rate', 'threshold_met'}; grade is None for an invalid score
    """
    if score is None or pd.isna(score) or score < 0 or not total_points or total_points <= 0:
        return {'grade': None, 'score_rate': 0.0, 'threshold_met': False}

    score_rate = score / total_points
    thresholds = GradeTierConfig.ABSOLUTE_THRESHOLDS

    if score_rate >= thresholds['A']:
        grade = 'A'
    elif score_rate >= thresholds['B']:
        grade = 'B'
    else:
        grade = 'C'

    return {
        'grade': grade,
        'score_rate': round(score_rate, 4),
        'threshold_met': grade != 'C',
    }


def batch_calculate_grades(data: pd.DataFrame, total_points: float,
                           score_col: str = 'score') -> pd.DataFrame:
    """Add absolute grade columns to a frame of submissions"""
    result_data = data.copy()
    scores = pd.to_numeric(result_data[score_col], errors='coerce')

    if total_points and total_points > 0:
        rates = scores / total_points
    else:
        rates = pd.Series(np.nan, index=result_data.index)

    thresholds = GradeTierConfig.ABSOLUTE_THRESHOLDS
    valid = rates.notna() & (scores >= 0)
    grades = pd.Series([None] * len(result_data), index=result_data.index, dtype=object)
    grades.loc[valid] = 'C'
    grades.loc[valid & (rates >= thresholds['B'])] = 'B'
    grades.loc[valid & (rates >= thresholds['A'])] = 'A'
    result_data['calculated_grade'] = grades
    result_data['score_rate'] = rates.where(valid).round(4)
    return result_data


def describe_catalog(grading_system: Optional[Union[GradingSystem, str]]) -> Dict[str, Any]:
    """Serializable view of a scheme"""
    system = GradeTierConfig.normalize(grading_system)
    if system == GradingSystem.ABSOLUTE:
        return {
            'grading_system': system.value,
            'percentile_based': False,
            'absolute_thresholds': dict(GradeTierConfig.ABSOLUTE_THRESHOLDS),
        }
    return {
        'grading_system': system.value,
        'percentile_based': True,
        'tiers': [tier.to_dict() for tier in GradeTierConfig.get_catalog(system)],
    }
