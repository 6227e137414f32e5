"""Turn analyzer outputs into a short, ranked list of coaching insights."""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Iterable, Sequence

from .models import (
    AnomalyEvent,
    CoachingInsight,
    DailyMetrics,
    InsightAction,
    ReadinessAnalysis,
    UserProfile,
)
from .stats import mean
from .trends import PerformancePattern, analyze_trend

LOGGER = logging.getLogger(__name__)

PRIORITY_WEIGHTS = {"critical": 100, "high": 75, "medium": 50, "low": 25}
CATEGORY_WEIGHTS = {"warning": 20, "suggestion": 15, "celebration": 10, "information": 5}
MAX_INSIGHTS = 5
RECOVERY_WINDOW = 7

_SOFTEN = re.compile(r"\b(should|must|need to)\b")


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


def _insight_id(kind: str, today: date, subject: str | None = None) -> str:
    parts = [kind, _slug(subject)] if subject else [kind]
    return "_".join([*parts, today.isoformat()])


def adapt_message(message: str, style: str) -> str:
    """Rephrase a message for the athlete's preferred coaching style."""
    if style == "supportive":
        return _SOFTEN.sub("might consider", message)
    if style == "direct":
        return message.replace("consider", "should").replace("might", "need to")
    if style == "technical":
        return f"Based on data analysis: {message}"
    if style == "motivational":
        return f"{message} You've got this!"
    return message


def _action(label: str, action: str, **payload: object) -> InsightAction:
    return InsightAction(label=label, action=action, payload=payload)


def readiness_insights(
    readiness: ReadinessAnalysis,
    *,
    profile: UserProfile,
    today: date,
) -> list[CoachingInsight]:
    style = profile.coaching_style
    score = readiness.overall_score
    if score < 40:
        low_factors = [
            f"Low {factor.name}: {round(factor.score)}/100" for factor in readiness.factors if factor.score < 60
        ]
        side = "above" if readiness.deviation > 0 else "below"
        return [
            CoachingInsight(
                id=_insight_id("readiness_critical", today),
                category="warning",
                kind="readiness",
                priority="critical",
                title="Recovery Day Recommended",
                message=adapt_message(
                    "Your readiness is significantly below baseline. Your body needs recovery to perform optimally.",
                    style,
                ),
                evidence=(
                    f"Overall readiness: {score}/100",
                    f"{round(abs(readiness.deviation))} points {side} personal baseline",
                    *low_factors,
                ),
                actions=(
                    _action("Plan Rest Day", "plan_rest", type="full_rest"),
                    _action("Light Recovery", "plan_recovery", type="active_recovery"),
                ),
                confidence=readiness.confidence,
            )
        ]
    if score < 60:
        return [
            CoachingInsight(
                id=_insight_id("readiness_moderate", today),
                category="suggestion",
                kind="readiness",
                priority="high",
                title="Adjust Training Intensity",
                message=adapt_message(
                    "Consider reducing training intensity by 10-20% based on current readiness factors.", style
                ),
                evidence=(f"Readiness level: {readiness.level}", *readiness.recommendations[:2]),
                actions=(
                    _action("Reduce Intensity", "modify_workout", intensity=-15),
                    _action("Continue Planned", "continue_workout"),
                ),
                confidence=readiness.confidence,
            )
        ]
    if score > 85 and readiness.deviation > 10:
        return [
            CoachingInsight(
                id=_insight_id("readiness_excellent", today),
                category="celebration",
                kind="readiness",
                priority="medium",
                title="Optimal Training Window",
                message=adapt_message(
                    "Your readiness is excellent! This is a great time for challenging workouts or personal records.",
                    style,
                ),
                evidence=(
                    f"Outstanding readiness: {score}/100",
                    f"{round(readiness.deviation)} points above baseline",
                ),
                actions=(
                    _action("Increase Intensity", "modify_workout", intensity=10),
                    _action("Attempt PR", "suggest_pr"),
                ),
                confidence=readiness.confidence,
            )
        ]
    return []


def pattern_insights(
    patterns: Sequence[PerformancePattern],
    *,
    profile: UserProfile,
    today: date,
) -> list[CoachingInsight]:
    """Insights for strongly trending or erratic metrics; patterns under 0.3 confidence are ignored."""
    style = profile.coaching_style
    insights: list[CoachingInsight] = []
    for pattern in patterns:
        if pattern.confidence < 0.3 or pattern.significance != "high":
            continue
        metric = pattern.metric
        if pattern.direction == "negative":
            insights.append(
                CoachingInsight(
                    id=_insight_id("pattern_decline", today, metric),
                    category="warning",
                    kind="progress",
                    priority="high",
                    title=f"{metric} Performance Declining",
                    message=adapt_message(
                        f"Your {metric.lower()} has been declining over the past {pattern.timeframe} days. "
                        "Let's identify the cause and adjust your approach.",
                        style,
                    ),
                    evidence=(
                        f"{pattern.timeframe}-day trend: {pattern.trend}",
                        f"Confidence: {round(pattern.confidence * 100)}%",
                        f"Data points: {pattern.data_points}",
                    ),
                    actions=(
                        _action("Analyze Causes", "analyze_decline", metric=metric),
                        _action("Adjust Program", "modify_program", metric=metric),
                    ),
                    confidence=pattern.confidence,
                )
            )
        elif pattern.direction == "positive":
            insights.append(
                CoachingInsight(
                    id=_insight_id("pattern_improve", today, metric),
                    category="celebration",
                    kind="progress",
                    priority="medium",
                    title=f"Great Progress in {metric}",
                    message=adapt_message(
                        f"Excellent work! Your {metric.lower()} has been steadily improving. Keep up the momentum!",
                        style,
                    ),
                    evidence=(
                        f"Consistent improvement over {pattern.timeframe} days",
                        f"Strong confidence: {round(pattern.confidence * 100)}%",
                    ),
                    actions=(
                        _action("Continue Program", "continue_program"),
                        _action("Progressive Overload", "increase_challenge", metric=metric),
                    ),
                    confidence=pattern.confidence,
                )
            )
        elif pattern.trend == "volatile":
            insights.append(
                CoachingInsight(
                    id=_insight_id("pattern_volatile", today, metric),
                    category="suggestion",
                    kind="technique",
                    priority="medium",
                    title=f"Inconsistent {metric} Performance",
                    message=adapt_message(
                        f"Your {metric.lower()} shows high variability. "
                        "Focusing on consistency could improve overall progress.",
                        style,
                    ),
                    evidence=(
                        f"High volatility detected over {pattern.timeframe} days",
                        "Inconsistent performance patterns",
                    ),
                    actions=(
                        _action("Focus on Form", "emphasize_technique"),
                        _action("Stabilize Load", "reduce_variability", metric=metric),
                    ),
                    confidence=pattern.confidence,
                )
            )
    return insights


def recovery_insights(
    metrics: Sequence[DailyMetrics],
    *,
    profile: UserProfile,
    today: date,
) -> list[CoachingInsight]:
    """Sleep-debt and soreness warnings from the last week of check-ins."""
    if len(metrics) < 3:
        return []
    style = profile.coaching_style
    recent = sorted(metrics, key=lambda item: item.date)[-RECOVERY_WINDOW:]
    sleep = [item.sleep for item in recent if item.sleep > 0]
    soreness = [item.soreness for item in recent if item.soreness > 0]
    insights: list[CoachingInsight] = []

    if len(sleep) >= 3:
        trend = analyze_trend(sleep)
        average = mean(sleep)
        if average < 6.5 and trend.direction == "negative":
            insights.append(
                CoachingInsight(
                    id=_insight_id("recovery_sleep", today),
                    category="warning",
                    kind="recovery",
                    priority="high",
                    title="Sleep Debt Accumulating",
                    message=adapt_message(
                        "Your sleep has been consistently below optimal levels. "
                        "This could impact recovery and performance.",
                        style,
                    ),
                    evidence=(
                        f"Average sleep: {average:.1f} hours",
                        "Declining sleep trend detected",
                        "Recommended: 7-9 hours per night",
                    ),
                    actions=(
                        _action("Sleep Plan", "create_sleep_plan"),
                        _action("Reduce Volume", "modify_workout", volume=-20),
                    ),
                    confidence=trend.confidence,
                )
            )

    if len(soreness) >= 3:
        trend = analyze_trend(soreness)
        average = mean(soreness)
        if average > 6 and trend.direction == "positive":
            insights.append(
                CoachingInsight(
                    id=_insight_id("recovery_soreness", today),
                    category="warning",
                    kind="recovery",
                    priority="high",
                    title="Elevated Muscle Soreness",
                    message=adapt_message(
                        "Muscle soreness has been increasing. "
                        "Consider adding more recovery modalities to your routine.",
                        style,
                    ),
                    evidence=(
                        f"Average soreness: {average:.1f}/10",
                        "Increasing soreness trend",
                        "Potential overreaching detected",
                    ),
                    actions=(
                        _action("Recovery Session", "plan_recovery"),
                        _action("Deload Week", "plan_deload"),
                    ),
                    confidence=trend.confidence,
                )
            )
    return insights


def progress_insights(
    patterns: Sequence[PerformancePattern],
    anomalies: Sequence[AnomalyEvent],
    *,
    profile: UserProfile,
    today: date,
) -> list[CoachingInsight]:
    """Plateau suggestions plus warnings for high-severity training anomalies."""
    style = profile.coaching_style
    insights: list[CoachingInsight] = []
    for pattern in patterns:
        if pattern.trend != "stable" or pattern.timeframe <= 14 or pattern.confidence <= 0.4:
            continue
        metric = pattern.metric
        insights.append(
            CoachingInsight(
                id=_insight_id("plateau", today, metric),
                category="suggestion",
                kind="plateau",
                priority="medium",
                title=f"{metric} Plateau Detected",
                message=adapt_message(
                    f"Your {metric.lower()} hasn't progressed in {pattern.timeframe} days. Time to shake things up!",
                    style,
                ),
                evidence=(
                    f"No significant progress in {pattern.timeframe} days",
                    f"Confidence: {round(pattern.confidence * 100)}%",
                ),
                actions=(
                    _action("Change Exercise", "exercise_variation", metric=metric),
                    _action("Alter Rep Range", "modify_reps", metric=metric),
                    _action("Deload", "plan_deload", metric=metric),
                ),
                confidence=pattern.confidence,
            )
        )

    for event in anomalies:
        if event.severity not in ("high", "critical"):
            continue
        subject = f"{event.kind}_{event.exercise or 'all'}_{event.detected_at.isoformat()}"
        insights.append(
            CoachingInsight(
                id=_insight_id("anomaly", today, subject),
                category="warning",
                kind="anomaly",
                priority=event.severity,
                title=event.description,
                message=adapt_message(
                    f"{event.description}. Review what changed around {event.detected_at.isoformat()}.", style
                ),
                evidence=(
                    f"Expected {event.expected:.1f}, observed {event.actual:.1f}",
                    *event.possible_causes[:2],
                ),
                actions=tuple(
                    _action(label, "anomaly_action", kind=event.kind) for label in event.suggested_actions[:2]
                ),
                confidence=event.confidence,
            )
        )
    return insights


def motivational_insights(
    readiness: ReadinessAnalysis,
    patterns: Sequence[PerformancePattern],
    *,
    profile: UserProfile,
    today: date,
) -> list[CoachingInsight]:
    style = profile.coaching_style
    insights: list[CoachingInsight] = []
    consistent = [pattern for pattern in patterns if pattern.trend != "volatile" and pattern.confidence > 0.5]
    if len(consistent) >= 2:
        insights.append(
            CoachingInsight(
                id=_insight_id("motivation_consistency", today),
                category="celebration",
                kind="motivation",
                priority="low",
                title="Consistency Paying Off",
                message=adapt_message(
                    "Your consistent training approach is showing in your data patterns. "
                    "Keep up the excellent work!",
                    style,
                ),
                evidence=(f"{len(consistent)} metrics showing consistent patterns", "Data quality is excellent"),
                actions=(),
                confidence=0.8,
            )
        )
    if readiness.overall_score > 75:
        insights.append(
            CoachingInsight(
                id=_insight_id("motivation_goal", today),
                category="information",
                kind="goal",
                priority="low",
                title="Prime Training Conditions",
                message=adapt_message(
                    "With your current readiness level, you're well-positioned to make significant "
                    "progress toward your goals.",
                    style,
                ),
                evidence=(f"Excellent readiness: {readiness.overall_score}/100",),
                actions=(
                    _action("Set New Goal", "create_goal"),
                    _action("Challenge Workout", "suggest_challenge"),
                ),
                confidence=readiness.confidence,
            )
        )
    return insights


def insight_score(insight: CoachingInsight) -> float:
    return (
        PRIORITY_WEIGHTS[insight.priority]
        + CATEGORY_WEIGHTS[insight.category]
        + insight.confidence * 20
    )


def rank_insights(insights: Iterable[CoachingInsight], *, limit: int = MAX_INSIGHTS) -> list[CoachingInsight]:
    """Highest score first; generation order breaks ties."""
    return sorted(insights, key=insight_score, reverse=True)[:limit]


def generate_insights(
    readiness: ReadinessAnalysis,
    patterns: Sequence[PerformancePattern],
    metrics: Sequence[DailyMetrics],
    *,
    profile: UserProfile | None = None,
    anomalies: Sequence[AnomalyEvent] = (),
    today: date | None = None,
) -> list[CoachingInsight]:
    """
    Build every candidate insight and return the five most important.

    Insight ids are derived from the insight kind, its subject and `today`, so
    repeated runs over the same data yield the same ids.
    """
    user = profile or UserProfile()
    anchor = today or date.today()
    candidates = [
        *readiness_insights(readiness, profile=user, today=anchor),
        *pattern_insights(patterns, profile=user, today=anchor),
        *recovery_insights(metrics, profile=user, today=anchor),
        *progress_insights(patterns, anomalies, profile=user, today=anchor),
        *motivational_insights(readiness, patterns, profile=user, today=anchor),
    ]
    LOGGER.debug("Generated %s candidate insights", len(candidates))
    return rank_insights(candidates)
