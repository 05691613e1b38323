"""equiflow: stable care routines driven step by step."""

from .contracts import (
    DailyNotes,
    Horse,
    HorseContext,
    HorseStepProgress,
    RoutineInstance,
    RoutineInstanceStatus,
    RoutineStep,
    RoutineTemplate,
)
from .detail import RoutineInstanceDetail
from .flow import RoutineFlow
from .persistence import get_repository
from .resolver import HorseContextResolver, HorseRoster

__version__ = "0.1.0"
__all__ = [
    "DailyNotes",
    "Horse",
    "HorseContext",
    "HorseContextResolver",
    "HorseRoster",
    "HorseStepProgress",
    "RoutineFlow",
    "RoutineInstance",
    "RoutineInstanceDetail",
    "RoutineInstanceStatus",
    "RoutineStep",
    "RoutineTemplate",
    "get_repository",
]
