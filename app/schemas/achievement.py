"""
Achievement schemas.

POST /patients/{id}/achievements/check  → CheckAchievementsResponse
GET  /patients/{id}/achievements        → AchievementOverviewResponse
GET  /patients/{id}/achievements/stats  → AchievementStatsResponse
"""
from typing import Optional
from pydantic import BaseModel, Field


class GrantedAchievementResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    category: str = Field(description='"bronze" | "silver" | "gold" | "diamond"')
    image: Optional[str] = None
    granted_at: str


class CheckAchievementsResponse(BaseModel):
    new_achievements: list[GrantedAchievementResponse]
    count: int
    message: str


class AchievementStatusResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    obtained: bool
    granted_at: Optional[str] = None


class AchievementOverviewResponse(BaseModel):
    total: int
    obtained: int
    percentage: int
    new_achievements: list[GrantedAchievementResponse]
    by_category: dict[str, list[AchievementStatusResponse]] = Field(
        description="Keys in category order: bronze, silver, gold, diamond."
    )


class AchievementStatsResponse(BaseModel):
    activities_completed: int
    activities_total: int
    activities_percentage: int
    modules_completed: int
    modules_total: int
    current_streak: int = Field(description="Consecutive days with a completed activity.")
    achievements_obtained: int
    achievements_total: int
    achievements_percentage: int
