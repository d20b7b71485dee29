# Integrated and refined grade prediction service
import logging
from typing import Dict, Any, Iterable, List, Optional, Union

import numpy as np

from gradecut.calculation import calibration as cal
from gradecut.calculation.enums import GradingSystem
from gradecut.calculation.formulas import clean_scores
from gradecut.calculation.calculators.integrated_predictor import (
    IntegratedPrediction, MidtermSummary, RealMidterm, SimulatedMidterm,
    match_scores_by_student, predict_from_source
)
from gradecut.calculation.calculators.refined_predictor import (
    RefinedPrediction, predict_refined_integrated_grades, refine_simulated_prediction
)
from gradecut.services.cache import PredictionCache

logger = logging.getLogger(__name__)

ESTIMATED_COHORT_MULTIPLIER = 2
MIN_ESTIMATED_COHORT = 100


class InsufficientSampleError(ValueError):
    """Not enough matched submissions for a prediction"""

    def __init__(self, message: str, sample_size: int = 0, required: int = 0):
        super().__init__(message)
        self.sample_size = sample_size
        self.required = required


def _final_totals(records: Iterable[Dict[str, Any]]) -> np.ndarray:
    return clean_scores(record.get('total_score') for record in records)


def estimate_cohort_size(matched_count: int) -> int:
    """Cohort size assumed for a self-reported rank on the real-sample path"""
    return max(matched_count * ESTIMATED_COHORT_MULTIPLIER, MIN_ESTIMATED_COHORT)


class PredictionService:
    """Selects the midterm source and runs the predictors for a final exam"""

    def __init__(self, cache: Optional[PredictionCache] = None,
                 rng: Optional[np.random.Generator] = None):
        self.cache = cache
        self.rng = rng

    def predict_integrated(self, final_submissions: List[Dict[str, Any]], final_total: float,
                           grading_system: Union[GradingSystem, str, None] = GradingSystem.CSAT,
                           midterm_submissions: Optional[List[Dict[str, Any]]] = None,
                           midterm_total: Optional[float] = None,
                           midterm_summary: Optional[MidtermSummary] = None,
                           midterm_exam_id: Optional[str] = None,
                           final_exam_id: Optional[str] = None) -> IntegratedPrediction:
        """
        Integrated prediction for a final exam

        Real midterm submissions take precedence over an admin-entered
        summary. Raises InsufficientSampleError when neither is available or
        the sample is too small.
        """
        logger.info(f"Integrated prediction requested for final exam {final_exam_id}")

        if midterm_submissions is not None:
            midterm_scores, final_scores = match_scores_by_student(midterm_submissions, final_submissions)
            source = RealMidterm(midterm_scores)
            required = cal.MIN_REAL_SAMPLE_SIZE
            sample_size = len(final_scores)
        elif midterm_summary is not None:
            final_scores = _final_totals(final_submissions)
            source = SimulatedMidterm(midterm_summary)
            required = cal.MIN_SIMULATED_SAMPLE_SIZE
            sample_size = len(final_scores)
        else:
            raise InsufficientSampleError("Final exam has no linked midterm data")

        prediction = predict_from_source(source, final_scores, final_total, grading_system,
                                         rng=self.rng, midterm_total=midterm_total)
        if prediction is None:
            raise InsufficientSampleError(
                f"Need at least {required} submissions for an integrated prediction, got {sample_size}",
                sample_size=sample_size, required=required
            )

        prediction.midterm_exam_id = midterm_exam_id
        prediction.final_exam_id = final_exam_id
        if self.cache is not None and final_exam_id:
            self.cache.set_integrated_prediction(final_exam_id, prediction.to_dict())
        logger.info(f"Integrated prediction ready: {prediction.sample_size} samples, source={prediction.source.value}")
        return prediction

    def predict_refined(self, final_submissions: List[Dict[str, Any]], final_total: float,
                        grading_system: Union[GradingSystem, str, None] = GradingSystem.CSAT,
                        user_id: Optional[str] = None,
                        user_final_score: Optional[float] = None,
                        prior_score: Optional[float] = None,
                        prior_rank: Optional[int] = None,
                        midterm_submissions: Optional[List[Dict[str, Any]]] = None,
                        midterm_total: Optional[float] = None,
                        midterm_summary: Optional[MidtermSummary] = None,
                        midterm_exam_id: Optional[str] = None,
                        final_exam_id: Optional[str] = None,
                        integrated_prediction: Optional[IntegratedPrediction] = None,
                        use_cache: bool = True) -> Dict[str, Any]:
        """
        Refined prediction for one student, as a JSON-ready dict

        Every call recomputes from the given inputs. On the simulated path the
        student is graded against integrated_prediction when supplied, else
        against the prediction cached for the final exam, and only simulates
        a new midterm when neither exists. With use_cache the result is saved
        per (final_exam_id, user_id) for saved_refinement.
        """
        cacheable = bool(use_cache and self.cache is not None and final_exam_id)

        if midterm_submissions is not None:
            refined = self._refine_real(final_submissions, final_total, grading_system, midterm_submissions,
                                        midterm_total, prior_score, prior_rank, user_final_score)
        elif midterm_summary is not None:
            base = integrated_prediction
            if base is None and cacheable:
                base = self._cached_integrated(final_exam_id)
            refined = self._refine_simulated(final_submissions, final_total, grading_system, midterm_summary,
                                             prior_score, prior_rank, user_final_score, base,
                                             final_exam_id if cacheable else None)
        else:
            raise InsufficientSampleError("Final exam has no linked midterm data")

        refined.midterm_exam_id = midterm_exam_id
        refined.final_exam_id = final_exam_id
        result = refined.to_dict()

        if cacheable and user_id:
            self.cache.set_refined_prediction(final_exam_id, user_id, result)
        return result

    def saved_refinement(self, final_exam_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Refinement last computed for the student, None when absent or uncached"""
        if self.cache is None:
            return None
        return self.cache.get_refined_prediction(final_exam_id, user_id)

    def _cached_integrated(self, final_exam_id: str) -> Optional[IntegratedPrediction]:
        cached = self.cache.get_integrated_prediction(final_exam_id)
        if not cached or not cached.get("is_simulated"):
            return None
        try:
            return IntegratedPrediction.from_dict(cached)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed cached prediction for {final_exam_id}: {str(e)}")
            return None

    def invalidate(self, final_exam_id: str) -> int:
        """Forget cached refinements after the exam's submissions change"""
        if self.cache is None:
            return 0
        return self.cache.invalidate_exam(final_exam_id)

    def _refine_real(self, final_submissions, final_total, grading_system, midterm_submissions,
                     midterm_total, prior_score, prior_rank, user_final_score) -> RefinedPrediction:
        midterm_scores, final_scores = match_scores_by_student(midterm_submissions, final_submissions)
        matched = len(final_scores)

        refined = predict_refined_integrated_grades(
            midterm_scores, final_scores, midterm_total or 0.0, final_total, grading_system,
            prior_score=prior_score,
            prior_rank=prior_rank,
            estimated_total_students=estimate_cohort_size(matched),
            user_final_score=user_final_score,
        )
        if refined is None:
            logger.warning(f"Refined prediction rejected: {matched} matched students")
            raise InsufficientSampleError(
                f"Need at least {cal.MIN_REAL_SAMPLE_SIZE} students with both exams, got {matched}",
                sample_size=matched, required=cal.MIN_REAL_SAMPLE_SIZE
            )
        return refined

    def _refine_simulated(self, final_submissions, final_total, grading_system, midterm_summary,
                          prior_score, prior_rank, user_final_score, base=None,
                          final_exam_id=None) -> RefinedPrediction:
        if user_final_score is None:
            raise ValueError("user_final_score is required to refine a simulated prediction")

        if base is None:
            base = self.predict_integrated(final_submissions, final_total, grading_system,
                                           midterm_summary=midterm_summary, final_exam_id=final_exam_id)
        return refine_simulated_prediction(
            base, midterm_summary, user_final_score,
            prior_score=prior_score,
            prior_rank=prior_rank,
            sample_size=len(_final_totals(final_submissions)),
        )
