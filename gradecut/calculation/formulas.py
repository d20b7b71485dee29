# Robust descriptive statistics for self-reported score samples
import math
import logging
from typing import Dict, Any, Iterable, Optional

import numpy as np
import pandas as pd

from .engine import StatisticalStrategy
from . import calibration as cal

logger = logging.getLogger(__name__)


def clean_scores(scores: Iterable) -> np.ndarray:
    """Coerce to float and drop None, NaN and infinite values"""
    if isinstance(scores, np.ndarray) and scores.dtype.kind == 'f':
        values = scores.astype(float)
    else:
        values = pd.to_numeric(pd.Series(list(scores), dtype=object), errors='coerce').astype(float).to_numpy()
    return values[np.isfinite(values)]


def quartile_bounds(values: np.ndarray) -> tuple:
    """
    Nearest-rank Q1/Q3 fences

    Q1 = s[floor(n * 0.25)], Q3 = s[floor(n * 0.75)] on the ascending sort,
    no interpolation.
    """
    ordered = np.sort(values)
    n = len(ordered)
    q1 = ordered[int(np.floor(n * cal.QUARTILE_LOW))]
    q3 = ordered[int(np.floor(n * cal.QUARTILE_HIGH))]
    iqr = q3 - q1
    return q1 - cal.IQR_MULTIPLIER * iqr, q3 + cal.IQR_MULTIPLIER * iqr


def trim_outliers(values: np.ndarray) -> np.ndarray:
    if len(values) == 0:
        return values
    lower, upper = quartile_bounds(values)
    return values[(values >= lower) & (values <= upper)]


def perfect_score_mask(values: np.ndarray, max_score: Optional[float] = None) -> np.ndarray:
    """Values at or above 99.9% of the exam total (100-point scale when unknown)"""
    if max_score is not None and max_score > 0:
        return values >= max_score * cal.PERFECT_SCORE_RATIO
    return (values == 100) | (values >= cal.PERFECT_SCORE_ABSOLUTE)


def population_std_dev(values: np.ndarray, mean: Optional[float] = None) -> float:
    """Standard deviation with denominator n around the given mean"""
    if len(values) == 0:
        return 0.0
    center = float(np.mean(values)) if mean is None else mean
    return float(np.sqrt(np.mean((values - center) ** 2)))


def _split_top(descending: np.ndarray) -> tuple:
    top_count = int(math.ceil(len(descending) * cal.TOP_SHARE))
    return descending[:top_count], descending[top_count:]


def _top_weighted_mean(descending: np.ndarray, top_weight: float) -> float:
    top, bottom = _split_top(descending)
    weights = np.concatenate([
        np.full(len(top), top_weight),
        np.full(len(bottom), cal.BOTTOM_WEIGHT),
    ])
    return float(np.average(descending, weights=weights))


def robust_mean(scores: Iterable, max_score: Optional[float] = None) -> float:
    """
    Bias-corrected mean of a voluntary score sample

    IQR trimming, perfect-score suppression and down-weighting of the top 20%,
    blended 0.4/0.6 with the plain mean of the working set.

    Args:
        scores: raw totals, non-finite values are ignored
        max_score: exam point total, used to recognise perfect scores

    Returns:
        The corrected mean, 0.0 for an empty sample
    """
    values = clean_scores(scores)
    if len(values) == 0:
        return 0.0

    trimmed = trim_outliers(values)
    if len(trimmed) == 0:
        return legacy_robust_mean(values)

    working = np.sort(trimmed)[::-1]

    perfect_share = float(np.mean(perfect_score_mask(working, max_score)))
    if perfect_share > cal.PERFECT_SCORE_MAX_SHARE and len(working) > cal.PERFECT_SCORE_MIN_SAMPLE:
        keep = int(math.ceil(len(working) * cal.PERFECT_SCORE_KEEP_SHARE))
        logger.debug(f"Perfect-score share {perfect_share:.2%} over limit, keeping top {keep} of {len(working)}")
        working = working[:keep]

    weighted = _top_weighted_mean(working, cal.TOP_WEIGHT)
    return float(cal.PLAIN_MEAN_BLEND * np.mean(working) + cal.WEIGHTED_MEAN_BLEND * weighted)


def robust_std_dev(scores: Iterable, mean: float) -> float:
    """
    Spread estimate matching robust_mean

    Top/bottom bucket variances are blended 0.3/0.7 and inflated, averaged with
    the trimmed variance and inflated again. Falls back to the population
    standard deviation around ``mean`` when a bucket is empty.
    """
    values = clean_scores(scores)
    if len(values) == 0:
        return 0.0

    trimmed = trim_outliers(values)
    if len(trimmed) == 0:
        return population_std_dev(values, mean)

    top, bottom = _split_top(np.sort(trimmed)[::-1])
    if len(top) == 0 or len(bottom) == 0:
        return population_std_dev(values, mean)

    bucket_variance = (
        cal.TOP_VARIANCE_WEIGHT * np.var(top) + cal.BOTTOM_VARIANCE_WEIGHT * np.var(bottom)
    ) * cal.BUCKET_VARIANCE_INFLATION
    blended = (
        cal.TRIMMED_VARIANCE_BLEND * np.var(trimmed)
        + (1 - cal.TRIMMED_VARIANCE_BLEND) * bucket_variance
    )
    return float(np.sqrt(blended * cal.FINAL_VARIANCE_INFLATION))


def legacy_robust_mean(scores: Iterable) -> float:
    """Earlier estimator without perfect-score suppression"""
    values = clean_scores(scores)
    if len(values) == 0:
        return 0.0

    basic_mean = float(np.mean(values))
    trimmed = trim_outliers(values)
    if len(trimmed) == 0:
        return basic_mean

    weighted = _top_weighted_mean(np.sort(values)[::-1], cal.LEGACY_TOP_WEIGHT)
    corrected = cal.LEGACY_TRIMMED_MEAN_BLEND * float(np.mean(trimmed)) + cal.LEGACY_WEIGHTED_MEAN_BLEND * weighted
    return float(corrected * cal.LEGACY_RESPONSE_BIAS + basic_mean * (1 - cal.LEGACY_RESPONSE_BIAS))


def legacy_robust_std_dev(scores: Iterable, mean: float) -> float:
    """Spread estimate paired with legacy_robust_mean"""
    values = clean_scores(scores)
    if len(values) == 0:
        return 0.0

    basic = population_std_dev(values, mean)
    trimmed = trim_outliers(values)
    if len(trimmed) == 0:
        return basic

    top, bottom = _split_top(np.sort(values)[::-1])
    if len(top) == 0 or len(bottom) == 0:
        return basic

    bucket_variance = (
        cal.TOP_VARIANCE_WEIGHT * np.var(top) + cal.BOTTOM_VARIANCE_WEIGHT * np.var(bottom)
    ) * cal.BUCKET_VARIANCE_INFLATION
    blended = 0.5 * np.var(trimmed) + 0.5 * bucket_variance
    return float(np.sqrt(blended * cal.LEGACY_VARIANCE_CORRECTION))


class AnomalyDetector:
    """Report on suspicious values in a sample"""

    def detect_outliers(self, data: pd.Series) -> Dict[str, Any]:
        """IQR fences using nearest-rank quartiles"""
        values = clean_scores(data)
        if len(values) == 0:
            return {'method': 'IQR', 'outlier_count': 0, 'outlier_percentage': 0.0,
                    'lower_bound': None, 'upper_bound': None}

        lower_bound, upper_bound = quartile_bounds(values)
        outliers = values[(values < lower_bound) | (values > upper_bound)]

        return {
            'method': 'IQR',
            'outlier_count': int(len(outliers)),
            'outlier_percentage': float(len(outliers) / len(values)),
            'lower_bound': float(lower_bound),
            'upper_bound': float(upper_bound),
        }

    def detect_perfect_scores(self, data: pd.Series, max_score: Optional[float] = None) -> Dict[str, Any]:
        """Share of perfect scores among the IQR-trimmed values"""
        trimmed = trim_outliers(clean_scores(data))
        if len(trimmed) == 0:
            return {'perfect_count': 0, 'perfect_share': 0.0, 'suppression_applied': False}

        mask = perfect_score_mask(trimmed, max_score)
        share = float(np.mean(mask))
        return {
            'perfect_count': int(np.sum(mask)),
            'perfect_share': share,
            'suppression_applied': bool(
                share > cal.PERFECT_SCORE_MAX_SHARE and len(trimmed) > cal.PERFECT_SCORE_MIN_SAMPLE
            ),
        }


def validate_score_frame(data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """Shared input checks for strategies that read a 'score' column"""
    validation_result = {
        'is_valid': True,
        'errors': [],
        'warnings': [],
        'stats': {}
    }

    if data.empty:
        validation_result['is_valid'] = False
        validation_result['errors'].append("Empty dataset")
        return validation_result

    if 'score' not in data.columns:
        validation_result['is_valid'] = False
        validation_result['errors'].append("Missing required column: score")
        return validation_result

    scores = pd.to_numeric(data['score'], errors='coerce')
    valid_count = int(np.isfinite(scores.astype(float)).sum())
    invalid_count = len(data) - valid_count

    if valid_count == 0:
        validation_result['is_valid'] = False
        validation_result['errors'].append("No valid scores")
    elif invalid_count > 0:
        validation_result['warnings'].append(f"Ignored {invalid_count} invalid score values")

    max_score = config.get('max_score')
    if max_score is not None and max_score <= 0:
        validation_result['is_valid'] = False
        validation_result['errors'].append("max_score must be positive")

    validation_result['stats'] = {
        'total_records': len(data),
        'valid_scores': valid_count,
    }
    return validation_result


class RobustStatisticsStrategy(StatisticalStrategy):
    """Bias-corrected mean and standard deviation"""

    def __init__(self):
        self.anomaly_detector = AnomalyDetector()

    def calculate(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        if 'score' not in data.columns:
            raise ValueError("Missing 'score' column")

        scores = clean_scores(data['score'])
        if len(scores) == 0:
            raise ValueError("No valid scores")

        max_score = config.get('max_score')
        estimator = config.get('estimator', 'refined')

        if estimator == 'legacy':
            mean = legacy_robust_mean(scores)
            std_dev = legacy_robust_std_dev(scores, mean)
        else:
            mean = robust_mean(scores, max_score)
            std_dev = robust_std_dev(scores, mean)

        return {
            'count': int(len(scores)),
            'estimator': estimator,
            'mean': mean,
            'std_dev': std_dev,
            'plain_mean': float(np.mean(scores)),
            'plain_std_dev': population_std_dev(scores),
            'outliers': self.anomaly_detector.detect_outliers(pd.Series(scores)),
            'perfect_scores': self.anomaly_detector.detect_perfect_scores(pd.Series(scores), max_score),
        }

    def validate_input(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        result = validate_score_frame(data, config)
        if config.get('estimator', 'refined') not in ('refined', 'legacy'):
            result['is_valid'] = False
            result['errors'].append(f"Unknown estimator: {config.get('estimator')}")
        return result

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'RobustStatistics',
            'version': '2.0',
            'description': 'IQR trimming, perfect-score suppression, top-20% down-weighting',
            'std_formula': 'population_ddof_0_inflated',
        }
