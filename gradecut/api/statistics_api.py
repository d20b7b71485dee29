from fastapi import APIRouter

import pandas as pd

from gradecut.api.common import success_response, to_http_exception
from gradecut.calculation import get_calculation_engine
from gradecut.calculation.enums import GradingSystem
from gradecut.calculation.calculators.grade_calculator import calculate_absolute_grade, describe_catalog
from gradecut.calculation.calculators.strategy_registry import list_all_strategies
from gradecut.schemas.request_schemas import (
    StatisticsRequest, CutoffRequest, AbsoluteGradeRequest, ItemAnalysisRequest
)
from gradecut.schemas.response_schemas import APIResponse
from gradecut.services.exam_statistics_service import summarize_exam

router = APIRouter(tags=["Statistics API"])


@router.get("/catalogs", response_model=APIResponse)
async def get_catalogs():
    """Tier catalogs of every grading system"""
    return success_response([describe_catalog(system) for system in GradingSystem])


@router.get("/strategies", response_model=APIResponse)
async def get_strategies():
    """Registered calculation strategies"""
    return success_response(list_all_strategies())


@router.post("/statistics", response_model=APIResponse)
async def get_exam_statistics(request: StatisticsRequest):
    """Robust summary, cutoffs and distribution of an exam"""
    try:
        summary = summarize_exam(
            request.scores,
            total_points=request.total_points,
            grading_system=request.grading_system,
            student_score=request.student_score
        )
        return success_response(summary)
    except Exception as e:
        raise to_http_exception(e, "Exam statistics")


@router.post("/cutoffs", response_model=APIResponse)
async def get_cutoffs(request: CutoffRequest):
    """Cutoff table for a sample"""
    try:
        engine = get_calculation_engine()
        result = engine.calculate(
            'cutoffs',
            pd.DataFrame({'score': request.scores}),
            {'grading_system': request.grading_system, 'student_score': request.student_score}
        )
        return success_response(result)
    except Exception as e:
        raise to_http_exception(e, "Cutoff calculation")


@router.post("/absolute-grade", response_model=APIResponse)
async def get_absolute_grade(request: AbsoluteGradeRequest):
    """Absolute A/B/C band for one score"""
    return success_response(calculate_absolute_grade(request.score, request.total_points))


@router.post("/items/analysis", response_model=APIResponse)
async def get_item_analysis(request: ItemAnalysisRequest):
    """Hardest multiple-choice and subjective questions"""
    try:
        engine = get_calculation_engine()
        data = pd.DataFrame([s.model_dump() for s in request.submissions],
                            columns=['mcq_answers', 'subjective_scores'])
        result = engine.calculate('item_analysis', data, {
            'correct_options': request.correct_options,
            'subjective_points': request.subjective_points,
            'limit': None if request.show_all else 10,
        })
        return success_response(result)
    except Exception as e:
        raise to_http_exception(e, "Item analysis")
