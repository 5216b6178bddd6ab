"""Chat request schemas for POST /ai-helper.

Field names are camelCase on the wire (the client contract) and snake_case in
Python. Unknown fields are ignored so older and newer clients both validate.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

AUTO_MODEL_ID = "auto"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ChatMessageIn(_WireModel):
    """One conversation turn as sent by the client."""

    role: Literal["system", "user", "assistant"]
    content: str


class RecentSession(_WireModel):
    start_time: float | str | None = Field(default=None, alias="startTime")
    duration: float = 0
    completed: bool = False


class SessionStats(_WireModel):
    total_sessions: int = Field(default=0, alias="totalSessions")
    completed_sessions: int = Field(default=0, alias="completedSessions")
    # "75%" from the dashboard, or a bare number
    completion_rate: str | float | None = Field(default=None, alias="completionRate")


class StudyStats(_WireModel):
    """Study-performance context; every field is optional."""

    total_study_time: float = Field(default=0, alias="totalStudyTime")
    study_duration: float | None = Field(default=None, alias="studyDuration")
    stats: SessionStats | None = None
    recent_sessions: list[RecentSession] = Field(default_factory=list, alias="recentSessions")
    coins_balance: float | None = Field(default=None, alias="coinsBalance")


class ChatRequestBody(_WireModel):
    """Request body for the streaming chat route.

    `model_id` absent or "auto" triggers heuristic routing.
    """

    messages: list[ChatMessageIn] = Field(..., min_length=1)
    study_stats: StudyStats | None = Field(default=None, alias="studyStats")
    group_info: Any = Field(default=None, alias="groupInfo")
    user_name: str | None = Field(default=None, alias="userName", max_length=200)
    model_id: str | None = Field(default=None, alias="modelId", max_length=100)
