"""Tests for view trend fitting and insight generation."""

import pytest

from productbazar.utils.insights import NOT_ENOUGH_DATA, calculate_linear_trend, generate_view_insights


def test_short_series_is_stable():
    trend = calculate_linear_trend([1, 50])
    assert trend.direction == "stable"
    assert trend.slope == 0.0


def test_increasing_trend():
    trend = calculate_linear_trend([10, 20, 30, 40])
    assert trend.slope == pytest.approx(10)
    assert trend.direction == "increasing"
    assert trend.confidence == pytest.approx(1.0)
    assert trend.percentage_change == 300


def test_decreasing_trend():
    trend = calculate_linear_trend([40, 30, 20, 10])
    assert trend.direction == "decreasing"
    assert trend.percentage_change == -75


def test_flat_series():
    trend = calculate_linear_trend([5, 5, 5])
    assert trend.direction == "stable"
    assert trend.confidence == 0.0
    assert trend.percentage_change == 0


def test_not_enough_views():
    insights = generate_view_insights({"totals": {"total_views": 3}})
    assert insights["summary"] == [NOT_ENOUGH_DATA]
    assert insights["recommendations"] == []
    assert insights["trends"]["views"] == {"trend": "stable", "percentage": 0}


def test_full_insights():
    stats = {
        "totals": {"total_views": 30, "unique_viewers": 12},
        "daily": [{"count": c} for c in (2, 4, 6, 8, 10)],
        "devices": [{"device": "mobile", "count": 27}, {"device": "desktop", "count": 3}],
        "sources": [{"source": "direct", "count": 27}, {"source": "search", "count": 3}],
        "countries": [{"country": "IN", "count": 30}],
    }
    insights = generate_view_insights(stats, {"average_view_duration": 20})

    assert insights["summary"] == [
        "Your product had 30 views from 12 unique visitors.",
        "Views are trending upward (+400%).",
        "This upward trend is consistent and statistically significant.",
        "90% of your visitors use mobile devices.",
        "Visitors spend an average of 20 seconds viewing your product.",
        "90% of traffic comes from direct visits.",
        "100% of your visitors are from IN.",
    ]
    assert insights["trends"]["views"] == {"trend": "increasing", "percentage": 400}
    assert insights["trends"]["confidence"] == 1.0
    assert insights["recommendations"] == [
        "Prioritize the mobile experience and perform mobile-specific testing",
        "Consider adding more engaging content to increase view time",
        "Your traffic sources are concentrated - diversify by sharing on additional platforms",
        "High direct traffic suggests word-of-mouth referrals - consider adding social sharing options",
        "Consider if your product could benefit from international exposure",
    ]


def test_long_engagement_and_global_audience():
    stats = {
        "totals": {"total_views": 100, "unique_viewers": 80},
        "sources": [{"source": s, "count": 25} for s in ("search", "social", "referral", "direct")],
        "countries": [{"country": c, "count": 10} for c in ("IN", "US", "DE", "FR", "BR", "JP")],
    }
    insights = generate_view_insights(stats, {"average_view_duration": 150})
    assert "Visitors spend an average of 2 min 30 sec viewing your product." in insights["summary"]
    assert "Your content is keeping visitors engaged for a significant time." in insights["summary"]
    assert "Your product is attracting a global audience." in insights["summary"]
    assert (
        "Your traffic is coming from multiple sources, which is healthy for sustainable growth."
        in insights["summary"]
    )


@pytest.mark.parametrize(
    "duration,low,high",
    [(29, True, False), (30, False, False), (120, False, False), (121, False, True)],
)
def test_engagement_thresholds(duration, low, high):
    stats = {"totals": {"total_views": 10, "unique_viewers": 10}}
    insights = generate_view_insights(stats, {"average_view_duration": duration})
    recommendations = insights["recommendations"]
    assert ("Consider adding more engaging content to increase view time" in recommendations) is low
    assert ("Consider adding call-to-actions for this engaged audience" in recommendations) is high
