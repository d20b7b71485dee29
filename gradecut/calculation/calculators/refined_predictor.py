# Personalised integrated prediction from a student's prior rank or score
import math
import logging
from dataclasses import dataclass, fields
from typing import Dict, Any, Iterable, Optional, Tuple, Union

import numpy as np
from scipy import stats

from .. import calibration as cal
from ..enums import GradingSystem
from ..formulas import robust_mean, robust_std_dev
from .cutoff_calculator import lookup_grade
from .grade_calculator import GradeTierConfig
from .integrated_predictor import (
    IntegratedPrediction, MidtermSummary, align_score_pairs, build_integrated_prediction
)

logger = logging.getLogger(__name__)

_PROBABILITY_EPSILON = 1e-9


@dataclass
class RefinementInput:
    """Self-reported prior performance; None means unknown"""
    prior_score: Optional[float] = None
    prior_rank: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.prior_score is None and self.prior_rank is None


@dataclass
class RefinedPrediction(IntegratedPrediction):
    """Integrated prediction re-centred on one student"""
    user_level: Optional[float] = None
    user_estimated_midterm: Optional[float] = None
    user_integrated_score: Optional[float] = None
    user_estimated_grade: Optional[int] = None

    @classmethod
    def from_prediction(cls, prediction: IntegratedPrediction, **user_fields) -> 'RefinedPrediction':
        base = {f.name: getattr(prediction, f.name) for f in fields(IntegratedPrediction)}
        return cls(**base, **user_fields)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            'user_level': self.user_level,
            'user_estimated_midterm': self.user_estimated_midterm,
            'user_integrated_score': self.user_integrated_score,
            'user_estimated_grade': self.user_estimated_grade,
        })
        return result


def rank_to_z_score(rank: int, sample_size: int, exact_inverse: bool = False) -> float:
    """
    z-score for a rank among ``sample_size`` students

    p = 1 - rank / sample_size. The default is the closed-form approximation
    z = sqrt(-2 ln(1 - p)) for p > 0.5, else -sqrt(-2 ln p); exact_inverse
    switches to the normal inverse CDF, which changes the numbers.
    """
    if not sample_size or sample_size <= 0:
        logger.warning(f"Cannot convert rank {rank} without a sample size, assuming the mean")
        return 0.0

    p = 1.0 - rank / sample_size
    p = min(max(p, _PROBABILITY_EPSILON), 1.0 - _PROBABILITY_EPSILON)

    if exact_inverse:
        return float(stats.norm.ppf(p))
    if p > 0.5:
        return math.sqrt(-2.0 * math.log(1.0 - p))
    return -math.sqrt(-2.0 * math.log(p))


def estimate_user_level(midterm: np.ndarray, prior_score: Optional[float],
                        prior_rank: Optional[int], total_students: Optional[int]) -> float:
    """
    Percentile level (0-100, higher is better) implied by the student's prior

    Rank wins over score: (T - rank + 1) / T * 100. A score is placed at
    50 + 20 * z against the robust midterm statistics.
    """
    if prior_rank is not None and total_students and total_students > 0:
        level = (total_students - prior_rank + 1) / total_students * 100.0
    elif prior_score is not None:
        mean = robust_mean(midterm)
        std_dev = robust_std_dev(midterm, mean)
        z = (prior_score - mean) / (std_dev or 1.0)
        level = cal.DEFAULT_USER_LEVEL + z * cal.SCORE_LEVEL_SLOPE
    else:
        level = cal.DEFAULT_USER_LEVEL
    return float(min(max(level, 0.0), 100.0))


def reweight_by_level(midterm: np.ndarray, final: np.ndarray, level: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Over-represent the slice of the sample consistent with the student's level

    Both vectors are sorted descending and split at floor(n * level / 100).
    Above level 50 the upper slice is scaled, otherwise the lower one. Sorting
    each exam separately loses which midterm belonged to which final.
    """
    midterm_desc = np.sort(midterm)[::-1]
    final_desc = np.sort(final)[::-1]
    top_count = int(math.floor(len(midterm_desc) * level / 100.0))

    factors = np.ones(len(midterm_desc))
    if level > 50:
        factors[:top_count] = cal.REWEIGHT_FACTOR
    else:
        factors[top_count:] = cal.REWEIGHT_FACTOR

    return midterm_desc * factors, final_desc * factors


def midterm_at_level(midterm: np.ndarray, level: float) -> float:
    """Nearest-rank midterm value for a percentile level"""
    descending = np.sort(midterm)[::-1]
    rank = int(math.ceil((1.0 - level / 100.0) * len(descending)))
    rank = min(max(rank, 1), len(descending))
    return float(descending[rank - 1])


def refine_simulated_prediction(prediction: IntegratedPrediction, summary: MidtermSummary,
                                final_score: float, prior_score: Optional[float] = None,
                                prior_rank: Optional[int] = None, sample_size: Optional[int] = None,
                                exact_inverse: bool = False) -> RefinedPrediction:
    """
    Personal grade on a simulation-based prediction

    The student's midterm is the reported prior score, else derived from the
    prior rank through a z-score against the midterm summary, else the
    summary mean. The prediction's cutoffs are reused unchanged.
    """
    estimated_midterm = summary.mean
    user_level = None

    if prior_score is not None:
        estimated_midterm = float(prior_score)
    elif prior_rank is not None:
        z = rank_to_z_score(prior_rank, sample_size or 0, exact_inverse=exact_inverse)
        estimated_midterm = summary.mean + z * summary.std_dev
        if sample_size:
            user_level = float(min(max((1.0 - prior_rank / sample_size) * 100.0, 0.0), 100.0))

    weight = prediction.midterm_weight
    integrated_score = weight * estimated_midterm + (1.0 - weight) * final_score
    catalog = GradeTierConfig.get_catalog(prediction.grading_system)
    grade = lookup_grade(integrated_score, prediction.integrated_cutoffs, catalog)

    logger.info(f"Simulated refinement: midterm {estimated_midterm:.1f}, integrated {integrated_score:.1f}, grade {grade}")
    return RefinedPrediction.from_prediction(
        prediction,
        user_level=user_level,
        user_estimated_midterm=float(estimated_midterm),
        user_integrated_score=float(integrated_score),
        user_estimated_grade=grade,
    )


def predict_refined_integrated_grades(midterm_scores: Iterable, final_scores: Iterable,
                                      midterm_total: float, final_total: float,
                                      grading_system: Union[GradingSystem, str, None] = GradingSystem.CSAT,
                                      prior_score: Optional[float] = None,
                                      prior_rank: Optional[int] = None,
                                      estimated_total_students: Optional[int] = None,
                                      user_final_score: Optional[float] = None,
                                      min_sample_size: int = cal.MIN_REAL_SAMPLE_SIZE) -> Optional[RefinedPrediction]:
    """
    Integrated prediction re-weighted toward the student's sub-population

    Args:
        midterm_scores: matched midterm totals
        final_scores: matched final totals
        midterm_total: midterm point total
        final_total: final point total
        grading_system: CSAT, RELATIVE_5 or ABSOLUTE
        prior_score: the student's reported previous score
        prior_rank: the student's reported previous rank (1 = top)
        estimated_total_students: cohort size the rank refers to
        user_final_score: the student's final total, enables the personal grade
        min_sample_size: minimum number of matched pairs

    Returns:
        RefinedPrediction, or None when the matched sample is too small
    """
    midterm, final = align_score_pairs(midterm_scores, final_scores)
    if len(midterm) < min_sample_size:
        logger.warning(f"Refined prediction needs {min_sample_size} matched pairs, got {len(midterm)}")
        return None

    has_prior = prior_score is not None or prior_rank is not None
    level = estimate_user_level(midterm, prior_score, prior_rank, estimated_total_students)

    if has_prior:
        adjusted_midterm, adjusted_final = reweight_by_level(midterm, final, level)
    else:
        adjusted_midterm, adjusted_final = midterm, final

    base = build_integrated_prediction(adjusted_midterm, adjusted_final, final_total, grading_system,
                                       midterm_total=midterm_total, perfect_by_total=not has_prior)
    refined = RefinedPrediction.from_prediction(base, user_level=level)

    if user_final_score is not None:
        estimated_midterm = float(prior_score) if prior_score is not None else midterm_at_level(midterm, level)
        # the student's own slice is the scaled one
        factor = cal.REWEIGHT_FACTOR if has_prior else 1.0
        weight = refined.midterm_weight
        integrated_score = factor * (weight * estimated_midterm + (1.0 - weight) * user_final_score)
        catalog = GradeTierConfig.get_catalog(refined.grading_system)

        refined.user_estimated_midterm = estimated_midterm
        refined.user_integrated_score = float(integrated_score)
        refined.user_estimated_grade = lookup_grade(integrated_score, refined.integrated_cutoffs, catalog)

    logger.info(f"Refined prediction at level {level:.1f} over {len(midterm)} pairs")
    return refined
