# Exam result statistics
import math
import logging
from typing import Dict, Any, Iterable, List, Optional, Union

import numpy as np

from gradecut.calculation.enums import GradingSystem
from gradecut.calculation.formulas import clean_scores, robust_mean, robust_std_dev
from gradecut.calculation.calculators.cutoff_calculator import (
    MIN_CUTOFF_SAMPLE_SIZE, compute_cutoffs, lookup_grade, percentile_rank
)
from gradecut.calculation.calculators.grade_calculator import (
    CSAT_TIERS, RELATIVE_5_TIERS, GradeTierConfig, calculate_absolute_grade
)

logger = logging.getLogger(__name__)

MIN_BUCKET_SIZE = 5
TARGET_BUCKET_COUNT = 10
STANDARD_SCORE_MEAN = 100.0
STANDARD_SCORE_SLOPE = 20.0


def _format_point(value: float) -> str:
    return f"{value:g}"


def histogram_buckets(scores: Iterable, total_points: float) -> List[Dict[str, Any]]:
    """
    Score distribution in fixed-width buckets

    Bucket width is max(5, ceil(total / 10)); labels read "start~end" with the
    last bucket capped at the point total. Scores outside [0, total] are not
    counted.
    """
    if not total_points or total_points <= 0:
        return []

    bucket_size = max(MIN_BUCKET_SIZE, int(math.ceil(total_points / TARGET_BUCKET_COUNT)))
    starts = list(range(0, int(math.floor(total_points)) + 1, bucket_size))
    counts = {start: 0 for start in starts}

    for score in clean_scores(scores):
        start = int(math.floor(score / bucket_size)) * bucket_size
        if start in counts and 0 <= score <= total_points:
            counts[start] += 1

    return [
        {
            'range': f"{start}~{_format_point(min(start + bucket_size - 1, total_points))}",
            'count': counts[start],
        }
        for start in starts
    ]


def summarize_exam(scores: Iterable, total_points: Optional[float] = None,
                   grading_system: Union[GradingSystem, str, None] = GradingSystem.CSAT,
                   student_score: Optional[float] = None) -> Dict[str, Any]:
    """
    Robust summary of an exam's reported totals

    Args:
        scores: reported totals
        total_points: exam point total
        grading_system: scheme used for the student's grade
        student_score: the requesting student's total

    Returns:
        mean, std_dev, count, cutoffs for both catalogs once the sample
        reaches MIN_CUTOFF_SAMPLE_SIZE, histogram buckets and, when a
        student score is given, percentile, grade and standard score
    """
    values = clean_scores(scores)
    system = GradeTierConfig.normalize(grading_system)
    count = int(len(values))

    mean = robust_mean(values, total_points)
    std_dev = robust_std_dev(values, mean)
    reliable = count >= MIN_CUTOFF_SAMPLE_SIZE

    csat_cutoffs = compute_cutoffs(values, CSAT_TIERS) if reliable else []
    relative_cutoffs = compute_cutoffs(values, RELATIVE_5_TIERS) if reliable else []

    summary = {
        'count': count,
        'mean': mean,
        'std_dev': std_dev,
        'plain_mean': float(np.mean(values)) if count else 0.0,
        'grading_system': system.value,
        'reliable': reliable,
        'csat_cutoffs': [c.to_dict() for c in csat_cutoffs],
        'relative_5_cutoffs': [c.to_dict() for c in relative_cutoffs],
        'distribution': histogram_buckets(values, total_points) if total_points else [],
        'student': None,
    }

    if not reliable:
        logger.info(f"Only {count} scores reported, cutoffs withheld below {MIN_CUTOFF_SAMPLE_SIZE}")

    if student_score is not None and math.isfinite(student_score):
        student = {
            'score': float(student_score),
            'percentile': percentile_rank(student_score, values),
            'grade': None,
            'standard_score': None,
            'absolute': None,
        }
        if reliable:
            if system == GradingSystem.RELATIVE_5:
                student['grade'] = lookup_grade(student_score, relative_cutoffs, RELATIVE_5_TIERS)
            else:
                student['grade'] = lookup_grade(student_score, csat_cutoffs, CSAT_TIERS)
            if std_dev > 0:
                student['standard_score'] = float(
                    (student_score - mean) / std_dev * STANDARD_SCORE_SLOPE + STANDARD_SCORE_MEAN
                )
        if system == GradingSystem.ABSOLUTE and total_points:
            student['absolute'] = calculate_absolute_grade(student_score, total_points)
        summary['student'] = student

    return summary
