# Item analysis tests
import pytest
import pandas as pd

from gradecut.calculation.calculators.item_calculator import (
    ItemAnalysisStrategy, mcq_wrong_rates, subjective_score_ratios, analyze_items
)


@pytest.fixture
def submissions():
    return [
        {'mcq_answers': {0: 1, 1: 3, 2: 3}, 'subjective_scores': {0: 5, 1: 5}},
        {'mcq_answers': {0: 2, 1: 3}, 'subjective_scores': {0: 10}},
        {'mcq_answers': {"0": 1, "1": 2, "2": 1}, 'subjective_scores': {"0": 0}},
        {'mcq_answers': None, 'subjective_scores': None},
    ]


class TestMcqWrongRates:

    def test_wrong_rates_sorted_descending(self, submissions):
        rows = mcq_wrong_rates([1, 2, 3], (s['mcq_answers'] for s in submissions))

        assert [r['question_number'] for r in rows] == [2, 1, 3]
        assert rows[0]['wrong_count'] == 2
        assert rows[0]['wrong_rate'] == pytest.approx(200 / 3)

    def test_unanswered_counts_toward_total_only(self, submissions):
        rows = mcq_wrong_rates([1, 2, 3], (s['mcq_answers'] for s in submissions))
        third = next(r for r in rows if r['question_number'] == 3)

        assert third['responses'] == 3
        assert third['wrong_count'] == 1

    def test_no_answer_sheets(self):
        rows = mcq_wrong_rates([1, 2], [None, None])
        assert all(r['wrong_rate'] == 0.0 for r in rows)

    def test_limit(self):
        sheets = [{i: 0 for i in range(12)}]
        assert len(mcq_wrong_rates([1] * 12, sheets, limit=10)) == 10
        assert len(mcq_wrong_rates([1] * 12, sheets)) == 12


class TestSubjectiveRatios:

    def test_ratios_sorted_ascending(self, submissions):
        rows = subjective_score_ratios([10, 5], (s['subjective_scores'] for s in submissions), question_offset=3)

        assert [r['question_number'] for r in rows] == [4, 5]
        assert rows[0]['avg_score_ratio'] == pytest.approx(0.5)
        assert rows[0]['responses'] == 3
        assert rows[1]['avg_score_ratio'] == pytest.approx(1.0)
        assert rows[1]['responses'] == 1

    def test_unscored_question(self):
        rows = subjective_score_ratios([10], [{}])
        assert rows[0]['avg_score_ratio'] == 0.0


class TestItemAnalysis:

    def test_analyze_items(self, submissions):
        result = analyze_items([1, 2, 3], [10, 5], submissions)

        assert result['submission_count'] == 4
        assert len(result['mcq_wrong_answers']) == 3
        assert result['subjective_low_scores'][0]['question_number'] == 4

    def test_strategy(self, submissions):
        strategy = ItemAnalysisStrategy()
        data = pd.DataFrame(submissions)
        config = {'correct_options': [1, 2, 3], 'subjective_points': [10, 5]}

        assert strategy.validate_input(data, config)['is_valid']
        result = strategy.calculate(data, config)
        assert result['mcq_wrong_answers'][0]['question_number'] == 2

    def test_strategy_rejects_empty_exam(self, submissions):
        validation = ItemAnalysisStrategy().validate_input(pd.DataFrame(submissions), {})
        assert not validation['is_valid']

    def test_strategy_rejects_non_positive_points(self, submissions):
        config = {'correct_options': [1], 'subjective_points': [0]}
        assert not ItemAnalysisStrategy().validate_input(pd.DataFrame(submissions), config)['is_valid']
