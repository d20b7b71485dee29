from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Union


class APIResponse(BaseModel):
    """Common response envelope"""
    code: int = Field(..., description="Status code")
    message: str = Field(..., description="Status message")
    data: Optional[Any] = Field(None, description="Payload")
    timestamp: str = Field(..., description="UTC timestamp, ISO 8601")


class CutoffData(BaseModel):
    grade: int
    min_score: float
    count_at_or_above: int
    cumulative_percent: float


class PredictionData(BaseModel):
    """Serialized integrated or refined prediction"""
    midterm_exam_id: Optional[str] = None
    final_exam_id: Optional[str] = None
    grading_system: str
    source: str
    is_simulated: bool
    sample_size: int
    midterm_weight: float
    midterm_mean: float
    midterm_std_dev: float
    final_mean: float
    final_std_dev: float
    midterm_cutoffs: List[CutoffData]
    final_cutoffs: List[CutoffData]
    integrated_cutoffs: List[CutoffData]
    required_final_scores: Dict[str, Union[float, str]]
    user_level: Optional[float] = None
    user_estimated_midterm: Optional[float] = None
    user_integrated_score: Optional[float] = None
    user_estimated_grade: Optional[int] = None


class PredictionResponse(APIResponse):
    data: PredictionData
