# Percentile rank and rank-based grade cutoffs
import math
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..engine import StatisticalStrategy
from ..formulas import clean_scores, validate_score_frame
from .grade_calculator import GradeTier, GradeTierConfig

logger = logging.getLogger(__name__)

# Callers should not trust cutoffs below this sample size; compute_cutoffs
# itself does not enforce it.
MIN_CUTOFF_SAMPLE_SIZE = 30


@dataclass
class CutoffResult:
    """Minimum score for one grade"""
    grade: int
    min_score: float
    count_at_or_above: int
    cumulative_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def percentile_rank(score: float, sample: Iterable) -> float:
    """Share of the sample strictly below ``score``, in percent"""
    values = clean_scores(sample)
    if len(values) == 0:
        return 0.0
    return float(100.0 * np.sum(values < score) / len(values))


def compute_cutoffs(sample: Iterable, catalog: Sequence[GradeTier]) -> List[CutoffResult]:
    """
    Nearest-rank cutoff for every tier

    For each tier the target rank is ceil(threshold / 100 * n), clamped to
    [1, n], counted from the top. The count is rescanned against the cutoff
    value, so boundary ties push cumulative_percent above the threshold.

    Args:
        sample: score sample
        catalog: tiers ordered by increasing cumulative percentile

    Returns:
        One CutoffResult per tier, in catalog order; empty for an empty sample
    """
    descending = np.sort(clean_scores(sample))[::-1]
    n = len(descending)
    if n == 0:
        return []

    results = []
    for tier in catalog:
        target_rank = int(math.ceil(tier.cumulative_percentile / 100.0 * n))
        target_rank = min(max(target_rank, 1), n)
        min_score = float(descending[target_rank - 1])
        count = int(np.sum(descending >= min_score))

        results.append(CutoffResult(
            grade=tier.grade,
            min_score=min_score,
            count_at_or_above=count,
            cumulative_percent=count / n * 100.0,
        ))

    return results


def lookup_grade(score: float, cutoffs: Sequence[CutoffResult],
                 catalog: Optional[Sequence[GradeTier]] = None) -> int:
    """First grade whose cutoff the score reaches, else the worst grade"""
    for cutoff in sorted(cutoffs, key=lambda c: c.grade):
        if score >= cutoff.min_score:
            return cutoff.grade
    if catalog:
        return GradeTierConfig.worst_grade(catalog)
    return max((c.grade for c in cutoffs), default=1)


class CutoffStrategy(StatisticalStrategy):
    """Percentile cutoff table for a grading system"""

    def calculate(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        if 'score' not in data.columns:
            raise ValueError("Missing 'score' column")

        scores = clean_scores(data['score'])
        if len(scores) == 0:
            raise ValueError("No valid scores")

        system = GradeTierConfig.normalize(config.get('grading_system'))
        catalog = GradeTierConfig.get_catalog(system)
        cutoffs = compute_cutoffs(scores, catalog)

        result = {
            'grading_system': system.value,
            'sample_size': int(len(scores)),
            'reliable': len(scores) >= MIN_CUTOFF_SAMPLE_SIZE,
            'cutoffs': [c.to_dict() for c in cutoffs],
        }

        student_score = config.get('student_score')
        if student_score is not None:
            result['student_percentile'] = percentile_rank(student_score, scores)
            result['student_grade'] = lookup_grade(student_score, cutoffs, catalog)

        return result

    def validate_input(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        validation_result = validate_score_frame(data, config)
        valid_scores = validation_result['stats'].get('valid_scores', 0)
        if validation_result['is_valid'] and valid_scores < MIN_CUTOFF_SAMPLE_SIZE:
            validation_result['warnings'].append(
                f"Sample too small ({valid_scores}), cutoffs are not reliable below {MIN_CUTOFF_SAMPLE_SIZE}"
            )
        return validation_result

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'PercentileCutoffs',
            'version': '1.0',
            'description': 'Rank-based grade cutoffs',
            'algorithm': 'ceil(p / 100 * n), descending, 1-indexed',
        }
