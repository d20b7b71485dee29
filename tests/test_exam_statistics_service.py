# Exam statistics service tests
import pytest

from gradecut.calculation.formulas import robust_mean, robust_std_dev
from gradecut.services.exam_statistics_service import histogram_buckets, summarize_exam


class TestHistogramBuckets:

    def test_hundred_point_exam(self, score_range):
        buckets = histogram_buckets(score_range, 100)

        assert len(buckets) == 11
        assert buckets[0] == {'range': '0~9', 'count': 9}
        assert buckets[1] == {'range': '10~19', 'count': 10}
        assert buckets[-1] == {'range': '100~100', 'count': 1}
        assert sum(b['count'] for b in buckets) == 100

    def test_minimum_bucket_width(self):
        buckets = histogram_buckets([0, 4, 5, 20], 20)
        assert [b['range'] for b in buckets] == ['0~4', '5~9', '10~14', '15~19', '20~20']
        assert [b['count'] for b in buckets] == [2, 1, 0, 0, 1]

    def test_fractional_total(self):
        buckets = histogram_buckets([97.5, 91.0], 97.5)
        assert buckets[-1] == {'range': '90~97.5', 'count': 2}

    def test_out_of_range_scores_are_ignored(self):
        buckets = histogram_buckets([-3, 150, 50], 100)
        assert sum(b['count'] for b in buckets) == 1

    def test_unknown_total(self):
        assert histogram_buckets([1, 2, 3], 0) == []


class TestSummarizeExam:

    def test_small_sample_withholds_cutoffs(self):
        summary = summarize_exam([60, 70, 80], total_points=100, student_score=70)

        assert summary['count'] == 3
        assert not summary['reliable']
        assert summary['csat_cutoffs'] == []
        assert summary['student']['percentile'] == pytest.approx(100 / 3)
        assert summary['student']['grade'] is None
        assert summary['student']['standard_score'] is None

    def test_full_summary(self, score_range):
        summary = summarize_exam(score_range, total_points=100, student_score=97)

        assert summary['reliable']
        assert summary['mean'] == pytest.approx(robust_mean(score_range, 100))
        assert len(summary['csat_cutoffs']) == 9
        assert len(summary['relative_5_cutoffs']) == 5
        assert summary['student']['grade'] == 1
        assert summary['student']['percentile'] == pytest.approx(96.0)

        mean = robust_mean(score_range, 100)
        expected = (97 - mean) / robust_std_dev(score_range, mean) * 20 + 100
        assert summary['student']['standard_score'] == pytest.approx(expected)

    def test_relative_grade(self, score_range):
        summary = summarize_exam(score_range, total_points=100, grading_system='RELATIVE_5', student_score=1)
        assert summary['student']['grade'] == 5

    def test_absolute_grade(self, score_range):
        summary = summarize_exam(score_range, total_points=100, grading_system='ABSOLUTE', student_score=85)
        assert summary['student']['absolute']['grade'] == 'A'
        assert summary['student']['grade'] is not None

    def test_empty_exam(self):
        summary = summarize_exam([], total_points=100)
        assert summary['count'] == 0
        assert summary['mean'] == 0.0
        assert summary['student'] is None
