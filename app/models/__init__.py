from .patient import Patient
from .module import Module
from .activity import Activity
from .activity_progress import ActivityProgress, ActivityState
from .module_progress import ModuleProgress, ModuleState
from .achievement import Achievement, AchievementCategory, PatientAchievement
from .burnout import (
    BurnoutDimension,
    BurnoutLevel,
    BurnoutQuestion,
    BurnoutTestResult,
    QuestionResponse,
    TestType,
)

__all__ = [
    "Patient",
    "Module",
    "Activity",
    "ActivityProgress",
    "ActivityState",
    "ModuleProgress",
    "ModuleState",
    "Achievement",
    "AchievementCategory",
    "PatientAchievement",
    "BurnoutDimension",
    "BurnoutLevel",
    "BurnoutQuestion",
    "BurnoutTestResult",
    "QuestionResponse",
    "TestType",
]
