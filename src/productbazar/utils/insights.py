"""Human-readable insights derived from product view statistics."""

from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger()

MIN_VIEWS_FOR_INSIGHTS = 5
NOT_ENOUGH_DATA = "Not enough data to generate meaningful insights yet."

# Seconds of average view time considered low / high engagement
LOW_ENGAGEMENT_SECONDS = 30
HIGH_ENGAGEMENT_SECONDS = 120


@dataclass
class LinearTrend:
    """Least-squares fit over evenly spaced daily counts."""

    slope: float = 0.0
    direction: str = "stable"
    confidence: float = 0.0
    percentage_change: int = 0


def calculate_linear_trend(values: list[float]) -> LinearTrend:
    """Fit y = a + b*x over x = 0..n-1.

    Direction is increasing/decreasing when the slope exceeds 5% of the mean
    either way. Confidence is R squared. Fewer than three points is stable.
    """
    n = len(values)
    if n < 3:
        return LinearTrend()

    mean_x = (n - 1) / 2
    mean_y = sum(values) / n
    numerator = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(values))
    denominator = sum((x - mean_x) ** 2 for x in range(n))
    slope = numerator / denominator if denominator else 0.0

    total_ss = sum((y - mean_y) ** 2 for y in values)
    residual_ss = sum(
        (y - (mean_y + slope * (x - mean_x))) ** 2 for x, y in enumerate(values)
    )
    r_squared = 1 - residual_ss / total_ss if total_ss else 0.0

    first, last = values[0], values[-1]
    change = ((last - first) / first) * 100 if first else 0.0

    direction = "stable"
    if slope > 0.05 * mean_y:
        direction = "increasing"
    elif slope < -0.05 * mean_y:
        direction = "decreasing"

    return LinearTrend(
        slope=slope,
        direction=direction,
        confidence=abs(r_squared),
        percentage_change=round(change),
    )


def _format_duration(seconds: float) -> str:
    minutes, secs = int(seconds // 60), int(seconds % 60)
    return f"{minutes} min {secs} sec" if minutes > 0 else f"{secs} seconds"


def _empty_insights() -> dict[str, Any]:
    return {
        "summary": [],
        "trends": {
            "views": {"trend": "stable", "percentage": 0},
            "engagement": {"trend": "stable", "percentage": 0},
            "confidence": 0,
        },
        "recommendations": [],
    }


def generate_view_insights(stats: dict, engagement: dict | None = None) -> dict[str, Any]:
    """Build summary lines and recommendations from stats and engagement metrics."""
    insights = _empty_insights()
    engagement = engagement or {}
    summary: list[str] = insights["summary"]
    recommendations: list[str] = insights["recommendations"]

    totals = stats.get("totals") or {}
    total_views = totals.get("total_views") or engagement.get("total_views") or 0
    if total_views < MIN_VIEWS_FOR_INSIGHTS:
        summary.append(NOT_ENOUGH_DATA)
        return insights

    unique_viewers = totals.get("unique_viewers") or engagement.get("unique_viewers_count") or 0
    summary.append(f"Your product had {total_views} views from {unique_viewers} unique visitors.")

    daily = stats.get("daily") or []
    if len(daily) >= 3:
        trend = calculate_linear_trend([float(day.get("count", 0)) for day in daily])
        insights["trends"]["views"] = {
            "trend": trend.direction,
            "percentage": trend.percentage_change,
        }
        insights["trends"]["confidence"] = round(trend.confidence, 4)

        if trend.direction == "increasing" and trend.percentage_change > 10:
            summary.append(f"Views are trending upward (+{trend.percentage_change}%).")
        elif trend.direction == "decreasing" and trend.percentage_change < -10:
            summary.append(f"Views are trending downward ({trend.percentage_change}%).")

        if trend.confidence > 0.7:
            if trend.direction == "increasing":
                summary.append("This upward trend is consistent and statistically significant.")
            elif trend.direction == "decreasing":
                summary.append("This downward trend is consistent and may require attention.")
                recommendations.append(
                    "Consider refreshing your content or promoting it through additional channels"
                )
        elif trend.confidence < 0.3 and len(daily) > 7:
            summary.append("View patterns show high variability day-to-day.")
            recommendations.append("Consider a more consistent content promotion strategy")

    devices = stats.get("devices") or []
    device_total = sum(d.get("count", 0) for d in devices)
    if device_total > 0:
        mobile = next((d.get("count", 0) for d in devices if d.get("device") == "mobile"), 0)
        mobile_pct = round(mobile / device_total * 100)
        if mobile_pct > 75:
            summary.append(f"{mobile_pct}% of your visitors use mobile devices.")
            recommendations.append(
                "Prioritize the mobile experience and perform mobile-specific testing"
            )
        elif mobile_pct < 25 and total_views > 20:
            summary.append(f"{100 - mobile_pct}% of your visitors use desktop devices.")
            recommendations.append(
                "Your audience is primarily desktop-based - ensure your desktop experience is optimized"
            )
        if len(devices) == 1 and total_views > 15:
            recommendations.append(
                "Your traffic comes from only one device type - consider testing on other platforms"
            )

    avg_duration = engagement.get("average_view_duration") or 0
    if avg_duration > 0:
        summary.append(
            f"Visitors spend an average of {_format_duration(avg_duration)} viewing your product."
        )
        if avg_duration < LOW_ENGAGEMENT_SECONDS:
            recommendations.append("Consider adding more engaging content to increase view time")
        elif avg_duration > HIGH_ENGAGEMENT_SECONDS:
            summary.append("Your content is keeping visitors engaged for a significant time.")
            recommendations.append("Consider adding call-to-actions for this engaged audience")

    sources = stats.get("sources") or []
    if sources:
        primary = sources[0]
        source_pct = round(primary.get("count", 0) / total_views * 100)
        label = "direct visits" if primary.get("source") == "direct" else primary.get("source")
        summary.append(f"{source_pct}% of traffic comes from {label}.")
        if source_pct > 80 and len(sources) <= 2:
            recommendations.append(
                "Your traffic sources are concentrated - diversify by sharing on additional platforms"
            )
            if primary.get("source") == "direct":
                recommendations.append(
                    "High direct traffic suggests word-of-mouth referrals - consider adding social sharing options"
                )
            elif primary.get("source") == "social":
                recommendations.append(
                    "Consider content marketing or SEO to diversify beyond social traffic"
                )
            elif primary.get("source") == "search":
                recommendations.append(
                    "Consider social media promotion to complement your SEO traffic"
                )
        if len(sources) >= 3:
            summary.append(
                "Your traffic is coming from multiple sources, which is healthy for sustainable growth."
            )

    countries = stats.get("countries") or []
    if countries:
        top = countries[0]
        country_pct = round(top.get("count", 0) / total_views * 100)
        if country_pct > 90:
            summary.append(f"{country_pct}% of your visitors are from {top.get('country')}.")
            if len(countries) == 1 and total_views > 20:
                recommendations.append(
                    "Consider if your product could benefit from international exposure"
                )
        elif len(countries) > 5:
            summary.append("Your product is attracting a global audience.")

    logger.debug(
        "view_insights_generated",
        total_views=total_views,
        summary_lines=len(summary),
        recommendations=len(recommendations),
    )
    return insights
