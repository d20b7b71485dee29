# Grading tier catalog tests
import pytest
import pandas as pd

from gradecut.calculation.enums import GradingSystem
from gradecut.calculation.calculators.grade_calculator import (
    GradeTier,
    GradeTierConfig,
    CSAT_TIERS,
    RELATIVE_5_TIERS,
    get_tier_catalog,
    exam_point_total,
    calculate_absolute_grade,
    batch_calculate_grades,
    describe_catalog
)


class TestGradeTierConfig:
    """Catalog selection"""

    @pytest.mark.parametrize("catalog,size", [(CSAT_TIERS, 9), (RELATIVE_5_TIERS, 5)])
    def test_catalog_shape(self, catalog, size):
        thresholds = [tier.cumulative_percentile for tier in catalog]

        assert len(catalog) == size
        assert [tier.grade for tier in catalog] == list(range(1, size + 1))
        assert all(a < b for a, b in zip(thresholds, thresholds[1:]))
        assert thresholds[-1] == 100

    def test_csat_thresholds(self):
        assert [t.cumulative_percentile for t in CSAT_TIERS] == [4, 11, 23, 40, 60, 77, 89, 96, 100]
        assert CSAT_TIERS[0].label == "Top 4%"

    def test_relative_thresholds(self):
        assert [t.cumulative_percentile for t in RELATIVE_5_TIERS] == [10, 34, 66, 90, 100]

    def test_absolute_uses_nine_tier_catalog(self):
        assert get_tier_catalog(GradingSystem.ABSOLUTE) is CSAT_TIERS
        assert not GradeTierConfig.is_percentile_based(GradingSystem.ABSOLUTE)

    def test_normalize(self):
        assert GradeTierConfig.normalize('relative_5') == GradingSystem.RELATIVE_5
        assert GradeTierConfig.normalize(None) == GradingSystem.CSAT
        assert GradeTierConfig.normalize('UNKNOWN') == GradingSystem.CSAT
        assert get_tier_catalog('RELATIVE_5') is RELATIVE_5_TIERS

    def test_worst_grade(self):
        assert GradeTierConfig.worst_grade(CSAT_TIERS) == 9
        assert GradeTierConfig.worst_grade(RELATIVE_5_TIERS) == 5

    def test_tiers_are_immutable(self):
        with pytest.raises(Exception):
            CSAT_TIERS[0].grade = 2
        assert GradeTier(1, 4.0, "Top 4%").to_dict()['cumulative_percentile'] == 4.0


class TestAbsoluteGrade:
    """80% / 60% bands"""

    @pytest.mark.parametrize("score,grade", [
        (100, 'A'), (80, 'A'), (79.9, 'B'), (60, 'B'), (59.99, 'C'), (0, 'C')
    ])
    def test_bands(self, score, grade):
        result = calculate_absolute_grade(score, 100)
        assert result['grade'] == grade
        assert result['threshold_met'] == (grade != 'C')

    def test_score_rate_uses_exam_total(self):
        result = calculate_absolute_grade(40, 50)
        assert result['grade'] == 'A'
        assert result['score_rate'] == 0.8

    @pytest.mark.parametrize("score,total", [(-1, 100), (None, 100), (float('nan'), 100), (50, 0)])
    def test_invalid_input(self, score, total):
        result = calculate_absolute_grade(score, total)
        assert result['grade'] is None
        assert not result['threshold_met']

    def test_batch_grades(self):
        data = pd.DataFrame({'student_id': ['s1', 's2', 's3', 's4'], 'score': [45, 31, 12, None]})
        result = batch_calculate_grades(data, total_points=50)

        assert list(result['calculated_grade'][:3]) == ['A', 'B', 'C']
        assert result['calculated_grade'].iloc[3] is None
        assert result['score_rate'].iloc[0] == 0.9
        assert 'calculated_grade' not in data.columns


class TestCatalogHelpers:

    def test_exam_point_total_rounds(self):
        assert exam_point_total([1.1, 2.2], [3.3]) == 6.6
        assert exam_point_total() == 0.0

    def test_describe_catalog(self):
        absolute = describe_catalog('ABSOLUTE')
        assert not absolute['percentile_based']
        assert absolute['absolute_thresholds']['A'] == 0.8

        csat = describe_catalog(GradingSystem.CSAT)
        assert csat['percentile_based']
        assert len(csat['tiers']) == 9
