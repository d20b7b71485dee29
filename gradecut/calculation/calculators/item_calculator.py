# Per-question item analysis
import logging
from typing import Dict, Any, Iterable, List, Optional, Sequence

import pandas as pd

from ..engine import StatisticalStrategy

logger = logging.getLogger(__name__)


def _normalize_sheet(sheet: Optional[Dict[Any, Any]]) -> Optional[Dict[int, float]]:
    """Answer sheets arrive with int or str keys depending on the transport"""
    if not isinstance(sheet, dict):
        return None
    normalized = {}
    for key, value in sheet.items():
        try:
            normalized[int(key)] = value
        except (TypeError, ValueError):
            logger.debug(f"Skipping non-numeric question key {key!r}")
    return normalized


def mcq_wrong_rates(correct_options: Sequence[int], answer_sheets: Iterable[Optional[Dict[Any, int]]],
                    limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Wrong-answer rate per multiple-choice question

    Every submission carrying an answer sheet counts toward the total of every
    question; only answered questions with a wrong option count as wrong.
    Sorted by wrong rate, highest first.
    """
    sheets = [s for s in (_normalize_sheet(sheet) for sheet in answer_sheets) if s is not None]
    rows = []
    for index, correct in enumerate(correct_options):
        answers = pd.Series([sheet.get(index) for sheet in sheets], dtype=object)
        answered = answers.dropna()
        wrong = int((answered != correct).sum())
        total = len(sheets)
        rows.append({
            'question_number': index + 1,
            'responses': total,
            'wrong_count': wrong,
            'wrong_rate': wrong / total * 100.0 if total > 0 else 0.0,
        })

    rows.sort(key=lambda r: r['wrong_rate'], reverse=True)
    return rows[:limit] if limit else rows


def subjective_score_ratios(max_points: Sequence[float], score_sheets: Iterable[Optional[Dict[Any, float]]],
                            question_offset: int = 0, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Average score as a share of the question's points

    Only submissions that scored a question count toward it. Sorted lowest
    ratio first; numbering continues after the multiple-choice block.
    """
    sheets = [s for s in (_normalize_sheet(sheet) for sheet in score_sheets) if s is not None]
    rows = []
    for index, points in enumerate(max_points):
        scored = pd.to_numeric(pd.Series([sheet.get(index) for sheet in sheets], dtype=object),
                               errors='coerce').dropna()
        ratio = float(scored.mean() / points) if len(scored) > 0 and points > 0 else 0.0
        rows.append({
            'question_number': question_offset + index + 1,
            'responses': int(len(scored)),
            'avg_score_ratio': ratio,
        })

    rows.sort(key=lambda r: r['avg_score_ratio'])
    return rows[:limit] if limit else rows


def analyze_items(correct_options: Sequence[int], subjective_points: Sequence[float],
                  submissions: Iterable[Dict[str, Any]], limit: Optional[int] = 10) -> Dict[str, Any]:
    """Hardest questions of an exam from its submissions"""
    submissions = list(submissions)
    return {
        'submission_count': len(submissions),
        'mcq_wrong_answers': mcq_wrong_rates(
            correct_options, (s.get('mcq_answers') for s in submissions), limit=limit
        ),
        'subjective_low_scores': subjective_score_ratios(
            subjective_points, (s.get('subjective_scores') for s in submissions),
            question_offset=len(correct_options), limit=limit
        ),
    }


class ItemAnalysisStrategy(StatisticalStrategy):
    """Item analysis over a frame of submissions"""

    def calculate(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        submissions = data.to_dict(orient='records')
        return analyze_items(
            config.get('correct_options', []),
            config.get('subjective_points', []),
            submissions,
            limit=config.get('limit', 10),
        )

    def validate_input(self, data: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
        validation_result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'stats': {'submissions': len(data)}
        }
        if not config.get('correct_options') and not config.get('subjective_points'):
            validation_result['is_valid'] = False
            validation_result['errors'].append("Exam has no questions configured")
        if 'mcq_answers' not in data.columns and 'subjective_scores' not in data.columns:
            validation_result['warnings'].append("Submissions carry no answer sheets")
        if any(p <= 0 for p in config.get('subjective_points', [])):
            validation_result['is_valid'] = False
            validation_result['errors'].append("Question points must be positive")
        return validation_result

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'ItemAnalysis',
            'version': '1.0',
            'description': 'Wrong-answer rate per MCQ, average score ratio per subjective question',
        }
