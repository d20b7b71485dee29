from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict

from ..calculation.enums import GradingSystem
from ..calculation.calculators.integrated_predictor import IntegratedPrediction, MidtermSummary
from .response_schemas import PredictionData


class SubmissionRecord(BaseModel):
    """One student's reported total for an exam"""
    user_id: Optional[str] = Field(None, description="User account ID")
    student_number: Optional[str] = Field(None, description="Student number, used when user_id is missing")
    total_score: Optional[float] = Field(None, description="Reported total score")


class MidtermSummaryModel(BaseModel):
    """Admin-entered midterm statistics"""
    mean: float = Field(..., description="Midterm mean")
    std_dev: float = Field(..., description="Midterm standard deviation", ge=0)
    total_points: float = Field(..., description="Midterm point total", gt=0)

    def to_summary(self) -> MidtermSummary:
        return MidtermSummary(mean=self.mean, std_dev=self.std_dev, total_points=self.total_points)


class StatisticsRequest(BaseModel):
    """Exam statistics request"""
    scores: List[Optional[float]] = Field(..., description="Reported totals")
    total_points: Optional[float] = Field(None, description="Exam point total", gt=0)
    grading_system: GradingSystem = Field(GradingSystem.CSAT, description="Grading scheme")
    student_score: Optional[float] = Field(None, description="Requesting student's total")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "scores": [72.5, 88, 91, 64, 100],
            "total_points": 100,
            "grading_system": "CSAT",
            "student_score": 88
        }
    })


class CutoffRequest(BaseModel):
    """Cutoff table request"""
    scores: List[Optional[float]] = Field(..., description="Score sample", min_length=1)
    grading_system: GradingSystem = Field(GradingSystem.CSAT, description="Grading scheme")
    student_score: Optional[float] = Field(None, description="Score to grade against the table")


class AbsoluteGradeRequest(BaseModel):
    """Absolute band request"""
    score: float = Field(..., description="Student total", ge=0)
    total_points: float = Field(..., description="Exam point total", gt=0)


class IntegratedPredictionRequest(BaseModel):
    """Integrated prediction for a final exam"""
    final_exam_id: Optional[str] = Field(None, description="Final exam ID")
    midterm_exam_id: Optional[str] = Field(None, description="Linked midterm exam ID")
    final_submissions: List[SubmissionRecord] = Field(..., description="Final exam submissions")
    final_total: float = Field(..., description="Final exam point total", gt=0)
    grading_system: GradingSystem = Field(GradingSystem.CSAT, description="Grading scheme")
    midterm_submissions: Optional[List[SubmissionRecord]] = Field(
        None, description="Midterm submissions; takes precedence over midterm_summary"
    )
    midterm_total: Optional[float] = Field(None, description="Midterm point total", gt=0)
    midterm_summary: Optional[MidtermSummaryModel] = Field(None, description="Admin-entered midterm statistics")

    def midterm_records(self) -> Optional[List[Dict]]:
        if self.midterm_submissions is None:
            return None
        return [s.model_dump() for s in self.midterm_submissions]

    def final_records(self) -> List[Dict]:
        return [s.model_dump() for s in self.final_submissions]


class RefinedPredictionRequest(IntegratedPredictionRequest):
    """Refined prediction for one student"""
    user_id: Optional[str] = Field(None, description="Requesting user, keys the cache")
    user_final_score: Optional[float] = Field(None, description="Requesting student's final total", ge=0)
    prior_score: Optional[float] = Field(None, description="Self-reported previous score", ge=0)
    prior_rank: Optional[int] = Field(None, description="Self-reported previous rank, 1 = top", ge=1)
    integrated_prediction: Optional[PredictionData] = Field(
        None, description="Integrated prediction already shown to the student; reused on the simulated path"
    )
    use_cache: bool = Field(True, description="Reuse the cached integrated prediction and save the result")

    def base_prediction(self) -> Optional[IntegratedPrediction]:
        if self.integrated_prediction is None:
            return None
        return IntegratedPrediction.from_dict(self.integrated_prediction.model_dump())

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "final_exam_id": "exam-final-1",
            "final_submissions": [{"user_id": "u1", "total_score": 81}],
            "final_total": 100,
            "midterm_summary": {"mean": 62.4, "std_dev": 14.1, "total_points": 100},
            "user_id": "u1",
            "user_final_score": 81,
            "prior_rank": 12
        }
    })


class ItemSubmission(BaseModel):
    """Answer sheets of one submission, keyed by 0-based question index"""
    mcq_answers: Optional[Dict[int, int]] = Field(None, description="Chosen option per MCQ")
    subjective_scores: Optional[Dict[int, float]] = Field(None, description="Score per subjective question")


class ItemAnalysisRequest(BaseModel):
    """Per-question analysis request"""
    correct_options: List[int] = Field(default_factory=list, description="Correct option per MCQ")
    subjective_points: List[float] = Field(default_factory=list, description="Points per subjective question")
    submissions: List[ItemSubmission] = Field(..., description="Submissions to analyse")
    show_all: bool = Field(False, description="Return every question instead of the worst 10")

    @field_validator('subjective_points')
    @classmethod
    def validate_subjective_points(cls, v):
        if any(points <= 0 for points in v):
            raise ValueError('Question points must be positive')
        return v
