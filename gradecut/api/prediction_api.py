from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from gradecut.api.common import success_response, to_http_exception
from gradecut.schemas.request_schemas import IntegratedPredictionRequest, RefinedPredictionRequest
from gradecut.schemas.response_schemas import PredictionResponse
from gradecut.services.cache import PredictionCache, create_prediction_cache
from gradecut.services.prediction_service import PredictionService

router = APIRouter(tags=["Prediction API"])

_cache: Optional[PredictionCache] = None
_cache_checked = False


def get_prediction_service() -> PredictionService:
    """Service bound to the process-wide prediction cache, if enabled"""
    global _cache, _cache_checked
    if not _cache_checked:
        _cache = create_prediction_cache()
        _cache_checked = True
    return PredictionService(cache=_cache)


@router.post("/predictions/integrated", response_model=PredictionResponse)
async def predict_integrated(
    request: IntegratedPredictionRequest,
    service: PredictionService = Depends(get_prediction_service)
):
    """Combined midterm/final cutoffs for a final exam"""
    try:
        prediction = service.predict_integrated(
            request.final_records(),
            request.final_total,
            grading_system=request.grading_system,
            midterm_submissions=request.midterm_records(),
            midterm_total=request.midterm_total,
            midterm_summary=request.midterm_summary.to_summary() if request.midterm_summary else None,
            midterm_exam_id=request.midterm_exam_id,
            final_exam_id=request.final_exam_id
        )
        return success_response(prediction.to_dict())
    except Exception as e:
        raise to_http_exception(e, "Integrated prediction")


@router.post("/predictions/refined", response_model=PredictionResponse)
async def predict_refined(
    request: RefinedPredictionRequest,
    service: PredictionService = Depends(get_prediction_service)
):
    """Integrated prediction personalised with the student's prior rank or score"""
    try:
        result = service.predict_refined(
            request.final_records(),
            request.final_total,
            grading_system=request.grading_system,
            user_id=request.user_id,
            user_final_score=request.user_final_score,
            prior_score=request.prior_score,
            prior_rank=request.prior_rank,
            midterm_submissions=request.midterm_records(),
            midterm_total=request.midterm_total,
            midterm_summary=request.midterm_summary.to_summary() if request.midterm_summary else None,
            midterm_exam_id=request.midterm_exam_id,
            final_exam_id=request.final_exam_id,
            integrated_prediction=request.base_prediction(),
            use_cache=request.use_cache
        )
        return success_response(result)
    except Exception as e:
        raise to_http_exception(e, "Refined prediction")


@router.get("/predictions/refined/{final_exam_id}/{user_id}", response_model=PredictionResponse)
async def get_saved_refinement(
    final_exam_id: str,
    user_id: str,
    service: PredictionService = Depends(get_prediction_service)
):
    """Refinement last computed for a student"""
    result = service.saved_refinement(final_exam_id, user_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No saved refinement for {user_id} on {final_exam_id}")
    return success_response(result)
