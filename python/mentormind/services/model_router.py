"""Heuristic model routing.

Routing order:
1. An explicit, available, non-"auto" model id wins (source "manual").
2. Otherwise the last user message is classified three ways:
   - urgency: high | medium | low
   - requirement: analysis | planning | creative | motivation | general
   - condition: struggling | burnout | stable
3. The first matching row of PREFERENCE_RULES names a preference list; the
   first preferred model that is available wins (source "auto").
4. If none of the preferred models is available, the first available model in
   canonical order is used (source "fallback").

Keyword matching is case-insensitive and whole-word, so "plan" does not fire
on "planet". All classifier rules are ordered tables of (keywords, result).
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from mentormind.logging import get_logger
from mentormind.schemas.chat import AUTO_MODEL_ID, ChatMessageIn, StudyStats
from mentormind.services.llm.errors import ConfigurationError

logger = get_logger(__name__)

UrgencyLevel = Literal["low", "medium", "high"]
RequirementCategory = Literal["analysis", "planning", "creative", "motivation", "general"]
ConditionState = Literal["stable", "struggling", "burnout"]
ResolutionSource = Literal["manual", "auto", "fallback"]

SHORT_PROMPT_CHARS = 120
LONG_FORM_WORDS = 120
LOW_COMPLETION_RATE = 50.0

HIGH_URGENCY_KEYWORDS = (
    "urgent",
    "asap",
    "immediately",
    "right away",
    "deadline",
    "running out of time",
    "emergency",
)
MEDIUM_URGENCY_KEYWORDS = ("soon", "quick", "fast", "today", "before", "need to finish")
ANALYSIS_KEYWORDS = (
    "analyze",
    "analysis",
    "insight",
    "explain",
    "evaluate",
    "compare",
    "breakdown",
    "detailed",
    "reason",
)
PLANNING_KEYWORDS = ("plan", "schedule", "organize", "roadmap", "timeline", "structure", "outline")
CREATIVE_KEYWORDS = ("write", "draft", "story", "essay", "script", "creative", "compose")
MOTIVATION_KEYWORDS = ("motivate", "motivation", "encourage", "mindset", "inspire", "support")
BURNOUT_KEYWORDS = (
    "burned out",
    "burnt out",
    "exhausted",
    "overwhelmed",
    "stressed",
    "tired",
    "fatigued",
)
STRUGGLING_KEYWORDS = ("can't focus", "procrastinate", "procrastination", "struggling", "stuck")

URGENCY_RULES: tuple[tuple[tuple[str, ...], UrgencyLevel, str], ...] = (
    (HIGH_URGENCY_KEYWORDS, "high", "Detected high-urgency keyword"),
    (MEDIUM_URGENCY_KEYWORDS, "medium", "Detected medium-urgency keyword"),
)

REQUIREMENT_RULES: tuple[tuple[tuple[str, ...], RequirementCategory, str], ...] = (
    (ANALYSIS_KEYWORDS, "analysis", "Analysis-oriented keyword present"),
    (PLANNING_KEYWORDS, "planning", "Planning-oriented keyword present"),
    (CREATIVE_KEYWORDS, "creative", "Creative request keyword present"),
    (MOTIVATION_KEYWORDS, "motivation", "Motivational support keyword present"),
)

CONDITION_RULES: tuple[tuple[tuple[str, ...], ConditionState, str], ...] = (
    (BURNOUT_KEYWORDS, "burnout", "Burnout-related keyword present"),
    (STRUGGLING_KEYWORDS, "struggling", "Struggling keyword present"),
)

_SUPPORTIVE = ("claude-4-5-haiku", "nova-pro", "gpt-oss-120b", "nova-lite")
DEFAULT_PREFERENCES = ("claude-4-5-haiku", "nova-pro", "nova-lite", "gpt-oss-120b")


@dataclass(frozen=True)
class Signal:
    value: str
    signals: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RoutingAnalysis:
    urgency: Signal
    requirement: Signal
    condition: Signal


# Priority-ordered: urgency first, then requirement, then condition
PREFERENCE_RULES: tuple[tuple[Callable[[RoutingAnalysis], bool], tuple[str, ...]], ...] = (
    (
        lambda a: a.urgency.value == "high",
        ("nova-lite", "nova-pro", "claude-4-5-haiku", "gpt-oss-120b"),
    ),
    (
        lambda a: a.requirement.value == "analysis",
        ("claude-4-5-haiku", "gpt-oss-120b", "nova-pro", "nova-lite"),
    ),
    (
        lambda a: a.requirement.value == "planning",
        ("claude-4-5-haiku", "nova-pro", "nova-lite", "gpt-oss-120b"),
    ),
    (
        lambda a: a.requirement.value == "creative",
        ("nova-pro", "claude-4-5-haiku", "gpt-oss-120b", "nova-lite"),
    ),
    (lambda a: a.requirement.value == "motivation", _SUPPORTIVE),
    (lambda a: a.condition.value == "burnout", _SUPPORTIVE),
    (lambda a: a.condition.value == "struggling", _SUPPORTIVE),
)


@dataclass(frozen=True)
class RoutingDecision:
    resolved_model_id: str
    resolution_source: ResolutionSource
    analysis: RoutingAnalysis
    requested_model_id: str | None = None


def includes_keyword(text: str, keyword: str) -> bool:
    """Case-insensitive whole-word (or whole-phrase) match."""
    return re.search(rf"\b{re.escape(keyword)}\b", text, re.IGNORECASE) is not None


def _first_rule_hit(text: str, rules) -> tuple[str, str] | None:
    for keywords, result, signal in rules:
        if any(includes_keyword(text, kw) for kw in keywords):
            return result, signal
    return None


def analyze_urgency(text: str) -> Signal:
    hit = _first_rule_hit(text, URGENCY_RULES)
    if hit:
        return Signal(hit[0], [hit[1]])
    signals = ["Short prompt defaults to low urgency"] if len(text) <= SHORT_PROMPT_CHARS else []
    return Signal("low", signals)


def analyze_requirement(text: str) -> Signal:
    hit = _first_rule_hit(text, REQUIREMENT_RULES)
    if hit:
        return Signal(hit[0], [hit[1]])
    if len(text.split()) > LONG_FORM_WORDS:
        return Signal("analysis", ["Long-form request treated as analysis"])
    return Signal("general", [])


def parse_completion_rate(study_stats: StudyStats | None) -> float | None:
    """Completion rate as a number ("75%" -> 75.0); None if absent or unparseable."""
    if not study_stats or not study_stats.stats:
        return None
    raw = study_stats.stats.completion_rate
    if raw is None or raw == "":
        return None
    try:
        return float(str(raw).replace("%", "").strip())
    except ValueError:
        return None


def analyze_condition(text: str, study_stats: StudyStats | None) -> Signal:
    rate = parse_completion_rate(study_stats)
    if rate is not None and rate < LOW_COMPLETION_RATE:
        return Signal("struggling", [f"Low completion rate detected ({rate:g}%)"])
    hit = _first_rule_hit(text, CONDITION_RULES)
    if hit:
        return Signal(hit[0], [hit[1]])
    return Signal("stable", [])


def last_user_text(messages: Sequence[ChatMessageIn]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""


def preferences_for(analysis: RoutingAnalysis) -> tuple[str, ...]:
    for predicate, preferences in PREFERENCE_RULES:
        if predicate(analysis):
            return preferences
    return DEFAULT_PREFERENCES


def pick_first_available(
    preferences: Sequence[str], available: Sequence[str]
) -> tuple[str, ResolutionSource]:
    """First preferred model that is available, else the first available one.

    Raises:
        ConfigurationError: If no model is available at all.
    """
    for candidate in preferences:
        if candidate in available:
            return candidate, "auto"
    if not available:
        raise ConfigurationError("No AI models are configured or available")
    return available[0], "fallback"


def resolve_model_routing(
    messages: Sequence[ChatMessageIn],
    study_stats: StudyStats | None,
    requested_model_id: str | None,
    available_models: Sequence[str],
) -> RoutingDecision:
    """Pick the model for one request.

    Args:
        messages: Conversation as sent by the client.
        study_stats: Optional performance context.
        requested_model_id: Client's model choice; None or "auto" means route.
        available_models: Available model ids in canonical order.

    Raises:
        ConfigurationError: If no model is available.
    """
    requested = (
        requested_model_id
        if requested_model_id and requested_model_id != AUTO_MODEL_ID
        else None
    )

    if requested and requested in available_models:
        return RoutingDecision(
            resolved_model_id=requested,
            resolution_source="manual",
            analysis=RoutingAnalysis(
                urgency=Signal("low", ["Manual selection"]),
                requirement=Signal("general", []),
                condition=Signal("stable", []),
            ),
            requested_model_id=requested,
        )

    text = last_user_text(messages)
    analysis = RoutingAnalysis(
        urgency=analyze_urgency(text),
        requirement=analyze_requirement(text),
        condition=analyze_condition(text, study_stats),
    )
    model_id, source = pick_first_available(preferences_for(analysis), available_models)

    logger.info(
        "model_routed",
        model_id=model_id,
        resolution_source=source,
        urgency=analysis.urgency.value,
        requirement=analysis.requirement.value,
        condition=analysis.condition.value,
    )

    return RoutingDecision(
        resolved_model_id=model_id,
        resolution_source=source,
        analysis=analysis,
        requested_model_id=requested_model_id,
    )
