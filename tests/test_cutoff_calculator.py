# Percentile rank and cutoff tests
import math

import pytest
import pandas as pd
import numpy as np

from gradecut.calculation.calculators.cutoff_calculator import (
    CutoffResult, CutoffStrategy, MIN_CUTOFF_SAMPLE_SIZE,
    percentile_rank, compute_cutoffs, lookup_grade
)
from gradecut.calculation.calculators.grade_calculator import CSAT_TIERS, RELATIVE_5_TIERS


class TestPercentileRank:
    """Strict-inequality percentile rank"""

    def test_percentile_of_range(self, score_range):
        assert percentile_rank(50, score_range) == pytest.approx(49.0)
        assert percentile_rank(1, score_range) == 0.0
        assert percentile_rank(101, score_range) == 100.0

    def test_empty_sample(self):
        assert percentile_rank(50, []) == 0.0

    def test_monotonic_in_score(self):
        rng = np.random.default_rng(3)
        sample = rng.normal(60, 15, 80)
        query_scores = np.sort(rng.uniform(0, 120, 40))
        ranks = [percentile_rank(p, sample) for p in query_scores]
        assert all(a <= b for a, b in zip(ranks, ranks[1:]))

    def test_ties_are_not_counted_below(self):
        assert percentile_rank(70, [70, 70, 70, 60]) == pytest.approx(25.0)


class TestComputeCutoffs:
    """Nearest-rank cutoffs"""

    def test_top_grade_of_range(self, score_range):
        cutoffs = compute_cutoffs(score_range, CSAT_TIERS)

        assert len(cutoffs) == 9
        top = cutoffs[0]
        assert top.grade == 1
        assert top.min_score == 97
        assert top.count_at_or_above == 4
        assert top.cumulative_percent == pytest.approx(4.0)

    def test_last_tier_is_the_minimum(self, score_range):
        cutoffs = compute_cutoffs(score_range, RELATIVE_5_TIERS)
        assert cutoffs[-1].grade == 5
        assert cutoffs[-1].min_score == 1
        assert cutoffs[-1].count_at_or_above == 100

    def test_matches_rank_formula(self, score_range):
        descending = sorted(score_range, reverse=True)
        n = len(descending)
        for tier, cutoff in zip(CSAT_TIERS, compute_cutoffs(score_range, CSAT_TIERS)):
            rank = min(max(math.ceil(tier.cumulative_percentile / 100 * n), 1), n)
            assert cutoff.min_score == descending[rank - 1]

    def test_cutoffs_are_monotonic(self):
        rng = np.random.default_rng(11)
        for catalog in (CSAT_TIERS, RELATIVE_5_TIERS):
            cutoffs = compute_cutoffs(rng.normal(55, 20, 57), catalog)
            scores = [c.min_score for c in cutoffs]
            assert [c.grade for c in cutoffs] == list(range(1, len(catalog) + 1))
            assert all(a >= b for a, b in zip(scores, scores[1:]))

    def test_ties_push_cumulative_percent_above_threshold(self):
        sample = [90.0] * 10 + [float(v) for v in range(1, 21)]
        top = compute_cutoffs(sample, CSAT_TIERS)[0]
        assert top.min_score == 90.0
        assert top.count_at_or_above == 10
        assert top.cumulative_percent == pytest.approx(100 / 3)

    def test_single_score_sample(self):
        cutoffs = compute_cutoffs([42.0], CSAT_TIERS)
        assert all(c.min_score == 42.0 for c in cutoffs)
        assert all(c.cumulative_percent == 100.0 for c in cutoffs)

    def test_empty_sample(self):
        assert compute_cutoffs([], CSAT_TIERS) == []

    def test_result_serialization(self):
        result = CutoffResult(grade=1, min_score=97.0, count_at_or_above=4, cumulative_percent=4.0)
        assert result.to_dict() == {
            'grade': 1, 'min_score': 97.0, 'count_at_or_above': 4, 'cumulative_percent': 4.0
        }


class TestLookupGrade:
    """Grade of a single score"""

    def setup_method(self):
        self.cutoffs = compute_cutoffs([float(i) for i in range(1, 101)], CSAT_TIERS)

    def test_best_and_worst(self):
        assert lookup_grade(100, self.cutoffs, CSAT_TIERS) == 1
        assert lookup_grade(97, self.cutoffs, CSAT_TIERS) == 1
        assert lookup_grade(96.9, self.cutoffs, CSAT_TIERS) == 2

    def test_below_every_cutoff_gets_worst_grade(self):
        assert lookup_grade(0, self.cutoffs, CSAT_TIERS) == 9
        assert lookup_grade(0, [], RELATIVE_5_TIERS) == 5

    def test_worst_grade_without_catalog(self):
        assert lookup_grade(-5, self.cutoffs) == 9


class TestCutoffStrategy:
    """Strategy wrapper"""

    def setup_method(self):
        self.strategy = CutoffStrategy()

    def test_calculation_with_student(self, score_range):
        result = self.strategy.calculate(
            pd.DataFrame({'score': score_range}),
            {'grading_system': 'RELATIVE_5', 'student_score': 98}
        )
        assert result['grading_system'] == 'RELATIVE_5'
        assert result['sample_size'] == 100
        assert result['reliable']
        assert len(result['cutoffs']) == 5
        assert result['student_percentile'] == pytest.approx(97.0)
        assert result['student_grade'] == 1

    def test_small_sample_warning(self):
        data = pd.DataFrame({'score': list(range(MIN_CUTOFF_SAMPLE_SIZE - 1))})
        validation = self.strategy.validate_input(data, {})
        assert validation['is_valid']
        assert any('not reliable' in w for w in validation['warnings'])

        result = self.strategy.calculate(data, {})
        assert not result['reliable']
        assert result['grading_system'] == 'CSAT'
