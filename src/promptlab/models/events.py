"""Progress events emitted by the optimizer."""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Lifecycle events of an optimization run."""

    GENERATION_START = "generation-start"
    EVALUATION_PROGRESS = "evaluation-progress"
    IMPROVEMENT_FOUND = "improvement-found"
    STAGNATION = "stagnation"
    CONVERGENCE = "convergence"
    ERROR = "error"


class OptimizationEvent(BaseModel):
    """Event delivered to progress sinks."""

    type: EventType
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


EventCallback = Callable[[OptimizationEvent], None]
