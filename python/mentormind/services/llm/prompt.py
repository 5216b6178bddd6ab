"""Provider-agnostic prompt rendering for the study mentor.

- build_system_prompt renders the mentor persona plus the learner's context
- render_messages produces the Turn list handed to adapters

Prompt structure:
- Server system turn always first
- Client history (user/assistant only, client system turns dropped)
- Whitespace-only turns dropped
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from mentormind.services.llm.types import Turn

if TYPE_CHECKING:
    from mentormind.schemas.chat import ChatMessageIn, StudyStats

MAX_RECENT_SESSIONS = 5
DEFAULT_SESSION_SECONDS = 1500

PERSONA = (
    "You are MentorMind, a calm and practical study mentor.",
    "You help learners plan their study time, understand difficult material and keep going when motivation dips.",
    "Be encouraging but honest, and ground your advice in the learner's own study data when it is relevant.",
)

GUIDELINES = (
    "Guidelines:",
    "1. Address the learner by their first name.",
    "2. Format responses with markdown:",
    "   - **bold** for key terms",
    "   - numbered lists for step-by-step instructions, bullet points for general lists",
    "   - fenced code blocks with a language identifier for code",
    "   - ### headings to organize longer responses",
    "3. For programming questions, explain the concept before showing well-commented code.",
    "4. Prefer lists and short paragraphs over tables.",
    "5. Keep responses clear and scannable. Helpfulness comes first.",
)


def format_duration(seconds: float | int | None) -> str:
    """Render seconds as "1h 5m", "25m" or "45s"."""
    total = max(int(seconds or 0), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m"
    return f"{secs}s"


def _format_session_date(start_time: float | int | str | None) -> str:
    if start_time is None:
        return "unknown date"
    if isinstance(start_time, str):
        return start_time[:10]
    # Epoch milliseconds
    return datetime.fromtimestamp(start_time / 1000, tz=UTC).strftime("%Y-%m-%d")


def build_system_prompt(
    user_name: str | None,
    study_stats: "StudyStats | None",
    group_info: object | None,
    now: datetime | None = None,
) -> str:
    """Render the mentor system prompt for one request."""
    now = now or datetime.now(UTC)
    stats = study_stats.stats if study_stats and study_stats.stats else None

    profile = [
        "Learner profile:",
        f"- Name: {user_name or 'Learner'}",
        f"- Total Study Time: {format_duration(study_stats.total_study_time if study_stats else 0)}",
        "- Preferred Session Length: "
        + format_duration(
            study_stats.study_duration
            if study_stats and study_stats.study_duration is not None
            else DEFAULT_SESSION_SECONDS
        ),
    ]

    metrics = [
        "Study performance:",
        f"- Total Sessions: {stats.total_sessions if stats else 0}",
        f"- Completed Sessions: {stats.completed_sessions if stats else 0}",
        f"- Completion Rate: {(stats.completion_rate if stats else None) or '0%'}",
    ]

    sessions = (study_stats.recent_sessions if study_stats else None) or []
    session_lines = [
        f"- {_format_session_date(s.start_time)}\n"
        f"  Duration: {format_duration(s.duration)}\n"
        f"  Completed: {'yes' if s.completed else 'no'}"
        for s in sessions[:MAX_RECENT_SESSIONS]
    ]
    recent = [
        "Recent study sessions:",
        "\n".join(session_lines) if session_lines else "No recent study activity.",
    ]

    extra = [
        "Additional information:",
        f"- Study Groups: {group_info if group_info is not None else []}",
        f"- Current Time: {now.strftime('%Y-%m-%d %H:%M %Z')}",
    ]

    sections = [list(PERSONA), profile, metrics, recent, extra, list(GUIDELINES)]
    return "\n\n".join("\n".join(section) for section in sections).strip()


def render_messages(system_prompt: str, messages: "list[ChatMessageIn]") -> list[Turn]:
    """Build the adapter turn list: server system prompt, then sanitized history."""
    turns = [Turn(role="system", content=system_prompt)]
    for message in messages:
        if message.role == "system" or not message.content.strip():
            continue
        turns.append(Turn(role=message.role, content=message.content))
    return turns
