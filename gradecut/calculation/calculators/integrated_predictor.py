# Combined midterm + final grade prediction
import logging
from dataclasses import dataclass
from typing import Dict, Any, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .. import calibration as cal
from ..engine import StatisticalStrategy
from ..enums import GradingSystem, PredictionSource
from ..formulas import robust_mean, robust_std_dev
from .cutoff_calculator import CutoffResult, compute_cutoffs, lookup_grade
from .grade_calculator import GradeTierConfig

logger = logging.getLogger(__name__)

IMPOSSIBLE = "IMPOSSIBLE"

RequiredScore = Union[float, str]


@dataclass
class MidtermSummary:
    """Admin-entered midterm statistics used when no raw midterm sample exists"""
    mean: float
    std_dev: float
    total_points: float


@dataclass
class RealMidterm:
    """Midterm totals aligned one-to-one with the final totals"""
    scores: Sequence[float]


@dataclass
class SimulatedMidterm:
    """Midterm side drawn from a normal distribution"""
    summary: MidtermSummary


MidtermSource = Union[RealMidterm, SimulatedMidterm]


@dataclass
class IntegratedPrediction:
    """Cutoff tables for midterm, final and their blend"""
    midterm_cutoffs: List[CutoffResult]
    final_cutoffs: List[CutoffResult]
    integrated_cutoffs: List[CutoffResult]
    required_final_scores: Dict[int, RequiredScore]
    grading_system: str = GradingSystem.CSAT.value
    sample_size: int = 0
    midterm_mean: float = 0.0
    midterm_std_dev: float = 0.0
    final_mean: float = 0.0
    final_std_dev: float = 0.0
    midterm_weight: float = cal.MIDTERM_WEIGHT
    is_simulated: bool = False
    midterm_exam_id: Optional[str] = None
    final_exam_id: Optional[str] = None

    @property
    def source(self) -> PredictionSource:
        return PredictionSource.SIMULATED if self.is_simulated else PredictionSource.REAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            'midterm_exam_id': self.midterm_exam_id,
            'final_exam_id': self.final_exam_id,
            'grading_system': self.grading_system,
            'source': self.source.value,
            'is_simulated': self.is_simulated,
            'sample_size': self.sample_size,
            'midterm_weight': self.midterm_weight,
            'midterm_mean': self.midterm_mean,
            'midterm_std_dev': self.midterm_std_dev,
            'final_mean': self.final_mean,
            'final_std_dev': self.final_std_dev,
            'midterm_cutoffs': [c.to_dict() for c in self.midterm_cutoffs],
            'final_cutoffs': [c.to_dict() for c in self.final_cutoffs],
            'integrated_cutoffs': [c.to_dict() for c in self.integrated_cutoffs],
            'required_final_scores': {str(k): v for k, v in self.required_final_scores.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IntegratedPrediction':
        """Rebuild a prediction previously serialised with to_dict"""
        def cutoffs(key):
            return [CutoffResult(**c) for c in data.get(key) or []]

        return cls(
            midterm_cutoffs=cutoffs('midterm_cutoffs'),
            final_cutoffs=cutoffs('final_cutoffs'),
            integrated_cutoffs=cutoffs('integrated_cutoffs'),
            required_final_scores={int(k): v for k, v in (data.get('required_final_scores') or {}).items()},
            grading_system=data.get('grading_system', GradingSystem.CSAT.value),
            sample_size=data.get('sample_size', 0),
            midterm_mean=data.get('midterm_mean', 0.0),
            midterm_std_dev=data.get('midterm_std_dev', 0.0),
            final_mean=data.get('final_mean', 0.0),
            final_std_dev=data.get('final_std_dev', 0.0),
            midterm_weight=data.get('midterm_weight', cal.MIDTERM_WEIGHT),
            is_simulated=data.get('is_simulated', False),
            midterm_exam_id=data.get('midterm_exam_id'),
            final_exam_id=data.get('final_exam_id'),
        )


def align_score_pairs(midterm_scores: Iterable, final_scores: Iterable) -> Tuple[np.ndarray, np.ndarray]:
    """
    Drop pairs where either side is missing or non-finite

    The shorter input bounds the number of pairs.
    """
    midterm = pd.to_numeric(pd.Series(list(midterm_scores), dtype=object), errors='coerce').astype(float)
    final = pd.to_numeric(pd.Series(list(final_scores), dtype=object), errors='coerce').astype(float)
    if len(midterm) != len(final):
        logger.warning(f"Unaligned score vectors ({len(midterm)} vs {len(final)}), truncating")
        length = min(len(midterm), len(final))
        midterm, final = midterm.iloc[:length], final.iloc[:length]

    midterm_values = midterm.to_numpy()
    final_values = final.to_numpy()
    keep = np.isfinite(midterm_values) & np.isfinite(final_values)
    return midterm_values[keep], final_values[keep]


def match_scores_by_student(midterm_records: Iterable[Dict[str, Any]],
                            final_records: Iterable[Dict[str, Any]]) -> Tuple[List[float], List[float]]:
    """
    Pair midterm and final totals of the same student

    A record identifies its student by 'user_id', falling back to
    'student_number'; its score is 'total_score'. The last submission of a
    student wins and students missing either exam are dropped.
    """
    def to_frame(records) -> pd.DataFrame:
        frame = pd.DataFrame(list(records))
        if frame.empty or 'total_score' not in frame.columns:
            return pd.DataFrame({'student_key': pd.Series(dtype=object), 'total_score': pd.Series(dtype=float)})

        missing = pd.Series([None] * len(frame), index=frame.index, dtype=object)
        user_ids = frame['user_id'].astype(object) if 'user_id' in frame.columns else missing
        numbers = frame['student_number'].astype(object) if 'student_number' in frame.columns else missing
        has_user_id = user_ids.notna() & (user_ids.astype(str) != '')

        frame['student_key'] = user_ids.where(has_user_id, numbers)
        frame['total_score'] = pd.to_numeric(frame['total_score'], errors='coerce')
        frame = frame.dropna(subset=['student_key', 'total_score'])
        frame['student_key'] = frame['student_key'].astype(str)
        return frame.drop_duplicates(subset='student_key', keep='last')[['student_key', 'total_score']]

    midterm = to_frame(midterm_records)
    final = to_frame(final_records)
    matched = midterm.merge(final, on='student_key', suffixes=('_midterm', '_final'))

    logger.info(f"Matched {len(matched)} students across midterm ({len(midterm)}) and final ({len(final)})")
    return matched['total_score_midterm'].tolist(), matched['total_score_final'].tolist()


def simulate_midterm_scores(summary: MidtermSummary, count: int,
                            rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Draw ``count`` midterm totals with the Box-Muller transform

    z = sqrt(-2 ln u1) * cos(2 pi u2); score = mean + z * std_dev, clamped to
    [0, total_points].
    """
    rng = rng or np.random.default_rng()
    # 1 - random() lies in (0, 1], keeping log(u1) finite
    u1 = 1.0 - rng.random(count)
    u2 = rng.random(count)
    z = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
    return np.clip(summary.mean + z * summary.std_dev, 0.0, summary.total_points)


def validate_midterm_weight(midterm_weight: float) -> None:
    """The final must keep a positive share for the required-final inversion"""
    if not 0.0 <= midterm_weight < 1.0:
        raise ValueError(f"midterm_weight must lie in [0, 1), got {midterm_weight}")


def required_final_scores(integrated_cutoffs: Sequence[CutoffResult], midterm_mean: float,
                          final_total: float, midterm_weight: float = cal.MIDTERM_WEIGHT) -> Dict[int, RequiredScore]:
    """Final score needed per grade by a student with an average midterm"""
    validate_midterm_weight(midterm_weight)
    final_weight = 1.0 - midterm_weight
    required = {}
    for cutoff in integrated_cutoffs:
        needed = (cutoff.min_score - midterm_weight * midterm_mean) / final_weight
        if needed < 0 or needed > final_total:
            required[cutoff.grade] = IMPOSSIBLE
        else:
            required[cutoff.grade] = float(needed)
    return required


def build_integrated_prediction(midterm: np.ndarray, final: np.ndarray, final_total: float,
                                grading_system: Union[GradingSystem, str, None],
                                midterm_weight: float = cal.MIDTERM_WEIGHT,
                                midterm_total: Optional[float] = None,
                                perfect_by_total: bool = True) -> IntegratedPrediction:
    """
    Cutoffs and inversion for already aligned vectors, no sample gate

    With perfect_by_total=False the robust means recognise perfect scores by
    the 100-point rule instead of the exam totals.
    """
    validate_midterm_weight(midterm_weight)
    system = GradeTierConfig.normalize(grading_system)
    catalog = GradeTierConfig.get_catalog(system)

    midterm_mean = robust_mean(midterm, midterm_total if perfect_by_total else None)
    midterm_std_dev = robust_std_dev(midterm, midterm_mean)
    final_mean = robust_mean(final, final_total if perfect_by_total else None)
    final_std_dev = robust_std_dev(final, final_mean)

    integrated = midterm_weight * midterm + (1.0 - midterm_weight) * final
    integrated_cutoffs = compute_cutoffs(integrated, catalog)

    return IntegratedPrediction(
        midterm_cutoffs=compute_cutoffs(midterm, catalog),
        final_cutoffs=compute_cutoffs(final, catalog),
        integrated_cutoffs=integrated_cutoffs,
        required_final_scores=required_final_scores(integrated_cutoffs, midterm_mean, final_total, midterm_weight),
        grading_system=system.value,
        sample_size=int(len(integrated)),
        midterm_mean=midterm_mean,
        midterm_std_dev=midterm_std_dev,
        final_mean=final_mean,
        final_std_dev=final_std_dev,
        midterm_weight=midterm_weight,
    )


def predict_integrated_grades(midterm_scores: Iterable, final_scores: Iterable,
                              midterm_total: float, final_total: float,
                              grading_system: Union[GradingSystem, str, None] = GradingSystem.CSAT,
                              min_sample_size: int = cal.MIN_REAL_SAMPLE_SIZE,
                              midterm_weight: float = cal.MIDTERM_WEIGHT) -> Optional[IntegratedPrediction]:
    """
    Predict combined grade cutoffs from matched midterm/final totals

    Args:
        midterm_scores: midterm totals, index-aligned with final_scores
        final_scores: final totals
        midterm_total: midterm point total
        final_total: final point total, bounds the required-final inversion
        grading_system: CSAT, RELATIVE_5 or ABSOLUTE (uses the 9-tier catalog)
        min_sample_size: minimum number of usable pairs
        midterm_weight: share of the midterm in the blended score

    Returns:
        IntegratedPrediction, or None when fewer than min_sample_size pairs remain
    """
    validate_midterm_weight(midterm_weight)
    midterm, final = align_score_pairs(midterm_scores, final_scores)
    if len(midterm) < min_sample_size:
        logger.info(f"Not enough matched pairs for integrated prediction: {len(midterm)} < {min_sample_size}")
        return None

    return build_integrated_prediction(midterm, final, final_total, grading_system,
                                       midterm_weight=midterm_weight, midterm_total=midterm_total)


def predict_from_source(source: MidtermSource, final_scores: Iterable, final_total: float,
                        grading_system: Union[GradingSystem, str, None] = GradingSystem.CSAT,
                        rng: Optional[np.random.Generator] = None,
                        midterm_total: Optional[float] = None) -> Optional[IntegratedPrediction]:
    """Integrated prediction from either a real or a simulated midterm"""
    if isinstance(source, RealMidterm):
        return predict_integrated_grades(source.scores, final_scores, midterm_total or 0.0,
                                         final_total, grading_system)

    if isinstance(source, SimulatedMidterm):
        finals = pd.to_numeric(pd.Series(list(final_scores), dtype=object), errors='coerce').astype(float)
        finals = finals[np.isfinite(finals)].to_numpy()
        simulated = simulate_midterm_scores(source.summary, len(finals), rng)
        logger.warning(f"Using simulated midterm scores for {len(finals)} final submissions")

        prediction = predict_integrated_grades(simulated, finals, source.summary.total_points,
                                               final_total, grading_system,
                                               min_sample_size=cal.MIN_SIMULATED_SAMPLE_SIZE)
        if prediction is not None:
            prediction.is_simulated = True
        return prediction

    raise ValueError(f"Unsupported midterm source: {type(source).__name__}")


def estimate_user_grade(prediction: IntegratedPrediction, midterm_score: float, final_score: float) -> int:
    """Grade of a blended score against a prediction's integrated cutoffs"""
    integrated = prediction.midterm_weight * midterm_score + (1.0 - prediction.midterm_weight) * final_score
    catalog = GradeTierConfig.get_catalog(prediction.grading_system)
    return lookup_grade(integrated, prediction.integrated_cutoffs, catalog)


class IntegratedPredictionStrategy(StatisticalStrategy):
    """Integrated cutoffs from a frame with 'midterm_score' and 'score' columns"""

    def calculate(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        if 'midterm_score' not in data.columns or 'score' not in data.columns:
            raise ValueError("Missing 'midterm_score' or 'score' column")

        prediction = predict_integrated_grades(
            data['midterm_score'], data['score'],
            config.get('midterm_total', 100), config.get('max_score', 100),
            config.get('grading_system'),
        )
        if prediction is None:
            return {'available': False, 'prediction': None}
        return {'available': True, 'prediction': prediction.to_dict()}

    def validate_input(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
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

        missing = [c for c in ('midterm_score', 'score') if c not in data.columns]
        if missing:
            validation_result['is_valid'] = False
            validation_result['errors'].append(f"Missing required columns: {missing}")
            return validation_result

        midterm, final = align_score_pairs(data['midterm_score'], data['score'])
        if len(midterm) < cal.MIN_REAL_SAMPLE_SIZE:
            validation_result['warnings'].append(
                f"Only {len(midterm)} matched pairs, prediction needs {cal.MIN_REAL_SAMPLE_SIZE}"
            )
        validation_result['stats']['matched_pairs'] = int(len(midterm))
        return validation_result

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'IntegratedPrediction',
            'version': '1.0',
            'description': 'Blended midterm/final cutoffs with required-final inversion',
            'formula': 'integrated = 0.5 * midterm + 0.5 * final',
        }
