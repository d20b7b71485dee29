# Grading enums
import enum


class GradingSystem(str, enum.Enum):
    """Grading scheme selector"""
    CSAT = "CSAT"                # 9-tier percentile scheme
    RELATIVE_5 = "RELATIVE_5"    # 5-tier percentile scheme
    ABSOLUTE = "ABSOLUTE"        # A/B/C bands on raw score


class ExamType(str, enum.Enum):
    """Exam role in a semester"""
    MIDTERM = "MIDTERM"
    FINAL = "FINAL"
    FINAL_ONLY = "FINAL_ONLY"


class PredictionSource(str, enum.Enum):
    """Where the midterm side of an integrated prediction came from"""
    REAL = "real"
    SIMULATED = "simulated"
