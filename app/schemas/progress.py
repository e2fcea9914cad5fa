"""
Progress schemas.

POST /patients/{id}/activities/{activity_id}/start     → ActivityAckResponse
POST /patients/{id}/activities/{activity_id}/complete  → CompletionResponse
GET  /patients/{id}/progress                           → ProgressSummaryResponse
GET  /patients/{id}/modules/{module_id}/progress       → ModuleDetailResponse
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from app.schemas.achievement import GrantedAchievementResponse


class ActivityAckResponse(BaseModel):
    activity_id: int
    module_id: int
    state: str = Field(description='"in_progress" or "completed" (a start never moves a state back).')
    started_at: Optional[str] = None


class ModuleProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    module_id: int
    percentage: int = Field(description="0–100, never decreases.")
    state: str = Field(description='"not_started" | "in_progress" | "completed"')
    started_at: Optional[str] = None
    completed_at: Optional[str] = Field(
        default=None,
        description="Set once, the first time the module reaches 100%.",
    )


class CompletionResponse(BaseModel):
    activity_id: int
    module_progress: ModuleProgressResponse
    new_achievements: list[GrantedAchievementResponse] = Field(
        default_factory=list,
        description="Achievements granted by this completion only.",
    )
    unlocked_module_id: Optional[int] = Field(
        default=None,
        description="Next module unlocked by this completion, if any.",
    )


class ModuleSummaryResponse(BaseModel):
    id: int
    title: str
    order: int
    percentage: int
    state: str = Field(description='"blocked" | "not_started" | "in_progress" | "completed"')
    unlocked: bool
    total_activities: int
    completed_activities: int


class LastActivityResponse(BaseModel):
    activity_id: int
    title: str
    module_title: str
    completed_at: Optional[str] = None


class ProgressSummaryResponse(BaseModel):
    patient_id: int
    modules: list[ModuleSummaryResponse] = Field(description="Program order, first module first.")
    overall_percentage: int = Field(description="Completed activities over the whole catalog, 0–100.")
    activities_completed: int
    total_activities: int
    last_activity: Optional[LastActivityResponse] = None


class ActivityStatusResponse(BaseModel):
    id: int
    title: str
    order: int
    duration_minutes: Optional[int] = None
    state: str = Field(description='"pending" | "in_progress" | "completed"')
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


class ModuleDetailResponse(BaseModel):
    module: ModuleSummaryResponse
    activities: list[ActivityStatusResponse]
