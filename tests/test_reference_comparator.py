"""
Unit tests for reference NDVI comparison.
"""
from datetime import date

import pytest

from app.domain.models import ComparisonStatus, ReferenceRecord
from app.services.domain.reference_comparator import (
    FALLBACK_SOURCE,
    HIGH_MATCH_MESSAGE,
    LOW_MATCH_MESSAGE,
    MODERATE_MATCH_MESSAGE,
    build_fallback_reference,
    classify_difference,
    compare_single,
    compare_with_reference,
    summarize_comparisons,
    tolerance_for,
)


def reference(average, reliability="medium", source="NARO"):
    return ReferenceRecord(
        source=source,
        source_full_name=f"{source} data",
        average=average,
        reliability=reliability,
        crop_type="rice",
    )


class TestTolerance:
    """Tests for the reliability tolerance policy."""

    @pytest.mark.parametrize("reliability,expected", [
        ("high", 10.0),
        ("medium", 15.0),
        ("low", 25.0),
        ("HIGH", 10.0),
        ("experimental", 15.0),
        (None, 15.0),
    ])
    def test_tolerance_for(self, reliability, expected):
        assert tolerance_for(reliability) == expected

    @pytest.mark.parametrize("percentage,expected", [
        (0.0, ComparisonStatus.EXCELLENT),
        (5.0, ComparisonStatus.EXCELLENT),
        (5.1, ComparisonStatus.GOOD),
        (10.0, ComparisonStatus.GOOD),
        (15.0, ComparisonStatus.QUESTIONABLE),
        (15.1, ComparisonStatus.POOR),
    ])
    def test_classify_difference(self, percentage, expected):
        assert classify_difference(percentage, 10.0) == expected


class TestCompareSingle:
    """Tests for one measured/reference comparison."""

    def test_close_match_with_high_reliability(self):
        result = compare_single(0.65, reference(0.64, "high"))

        assert result.percentage_difference == pytest.approx(1.56, abs=0.01)
        assert result.absolute_difference == pytest.approx(0.01)
        assert result.tolerance_threshold == 10.0
        assert result.status == ComparisonStatus.EXCELLENT
        assert result.is_within_tolerance is True

    def test_large_difference_is_poor(self):
        result = compare_single(0.3, reference(0.6, "high"))

        assert result.percentage_difference == pytest.approx(50.0)
        assert result.status == ComparisonStatus.POOR
        assert result.is_within_tolerance is False

    @pytest.mark.parametrize("measured,ref_value", [
        (None, 0.6),
        ("cloudy", 0.6),
        (0.6, None),
        (0.6, 0),
    ])
    def test_unusable_numbers_are_unknown(self, measured, ref_value):
        result = compare_single(measured, reference(ref_value))

        assert result.status == ComparisonStatus.UNKNOWN
        assert result.is_within_tolerance is False
        assert result.percentage_difference is None


class TestSummary:
    """Tests for the aggregate comparison summary."""

    def test_all_within_tolerance(self):
        report = compare_with_reference(0.6, [reference(0.6), reference(0.61, "high")])

        assert report.summary.match_percentage == 100
        assert report.summary.summary_message == HIGH_MATCH_MESSAGE
        assert report.summary.overall_status == ComparisonStatus.EXCELLENT
        assert report.summary.references_count == 2

    def test_two_of_three_within_tolerance(self):
        report = compare_with_reference(0.6, [reference(0.6), reference(0.62), reference(0.2)])

        assert report.summary.match_percentage == 67
        assert report.summary.summary_message == MODERATE_MATCH_MESSAGE
        assert report.summary.overall_status == ComparisonStatus.EXCELLENT

    def test_half_within_tolerance_is_moderate(self):
        report = compare_with_reference(0.6, [reference(0.6), reference(0.2)])

        assert report.summary.match_percentage == 50
        assert report.summary.summary_message == MODERATE_MATCH_MESSAGE

    def test_nothing_within_tolerance(self):
        report = compare_with_reference(0.9, [reference(0.3), reference(0.2)])

        assert report.summary.match_percentage == 0
        assert report.summary.summary_message == LOW_MATCH_MESSAGE
        assert report.summary.overall_status == ComparisonStatus.POOR

    def test_empty_input(self):
        summary = summarize_comparisons([])

        assert summary.overall_status == ComparisonStatus.UNKNOWN
        assert summary.match_percentage == 0
        assert summary.references_count == 0


class TestFallbackReference:
    """Tests for the synthetic reference used when sources fail."""

    def test_is_tagged_as_fallback(self):
        record = build_fallback_reference(35.6, 139.7, date(2024, 6, 1), date(2024, 6, 11), month=6)

        assert record.source == FALLBACK_SOURCE
        assert record.is_fallback is True
        assert record.reliability == "medium"
        assert record.note

    def test_seasonal_average_for_location(self):
        # abs(35.5 * 10 + 139.25 * 100) % 4 == 0 selects rice, June factor 0.9
        record = build_fallback_reference(35.5, 139.25, date(2024, 6, 1), date(2024, 6, 11), month=6)

        assert record.crop_type == "rice"
        assert record.average == pytest.approx(0.63)

    def test_season_follows_start_month(self):
        winter = build_fallback_reference(35.5, 139.25, date(2024, 1, 5), date(2024, 1, 20))

        assert winter.average == pytest.approx(0.21)

    def test_samples_are_bounded_and_deterministic(self):
        first = build_fallback_reference(35.6, 139.7, date(2024, 6, 1), date(2024, 6, 11))
        second = build_fallback_reference(35.6, 139.7, date(2024, 6, 1), date(2024, 6, 11))

        assert len(first.values) == 10
        assert first.values == second.values
        assert all(0.0 <= sample.ndvi <= 1.0 for sample in first.values)
        assert first.values[0].date == date(2024, 6, 1)

    def test_long_periods_are_capped(self):
        record = build_fallback_reference(35.6, 139.7, date(2024, 1, 1), date(2024, 12, 31))

        assert len(record.values) == 30

    def test_empty_period_has_no_samples(self):
        record = build_fallback_reference(35.6, 139.7, date(2024, 6, 1), date(2024, 6, 1))

        assert record.values == []

    def test_comparison_keeps_fallback_flag(self):
        record = build_fallback_reference(35.6, 139.7, date(2024, 6, 1), date(2024, 6, 11), month=6)

        report = compare_with_reference(0.74, [record])

        assert report.comparison_results[0].is_fallback is True
        assert report.comparison_results[0].source == FALLBACK_SOURCE
