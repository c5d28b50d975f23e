"""
Achievement Event Bus

Domain operations (meal logged, calorie goal met, daily activity
completed) publish an AchievementEvent; subscribers such as the
achievement evaluator consume it. publish() awaits every subscriber in
subscription order, so the publisher sees the evaluation completed (or
its error) before it continues.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Literal
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.exceptions import ValidationError
from src.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

# Type alias for supported actions
Action = Literal[
    "meal_log",
    "photo_log",
    "late_night_log",
    "calorie_goal_met",
    "daily_log",
]

# Set of valid actions for validation
VALID_ACTIONS = {
    "meal_log",
    "photo_log",
    "late_night_log",
    "calorie_goal_met",
    "daily_log",
}


class AchievementEvent(BaseModel):
    """Normalized (user_id, action, context) event"""
    user_id: str = Field(..., min_length=1)
    action: str
    context: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=now_utc)

    @field_validator("action")
    @classmethod
    def action_must_be_known(cls, value: str) -> str:
        if value not in VALID_ACTIONS:
            raise ValueError(
                f"Invalid action '{value}'. Must be one of: {', '.join(sorted(VALID_ACTIONS))}"
            )
        return value


EventHandler = Callable[[AchievementEvent], Awaitable[Any]]


class AchievementEventBus:
    """In-process publish/subscribe with awaited delivery"""

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)
        logger.debug(f"Subscribed {getattr(handler, '__qualname__', handler)} to achievement events")

    async def publish(self, event: AchievementEvent) -> List[Any]:
        """
        Deliver event to every subscriber

        Returns:
            Subscriber results, flattened when a subscriber returns a list

        Raises:
            Whatever a subscriber raises; later subscribers are not called
        """
        if not self._handlers:
            logger.warning(f"No subscribers for achievement event '{event.action}'")

        logger.debug(f"Publishing '{event.action}' for user {event.user_id}")

        results: List[Any] = []
        for handler in self._handlers:
            outcome = await handler(event)
            if isinstance(outcome, list):
                results.extend(outcome)
            elif outcome is not None:
                results.append(outcome)
        return results


def build_event(user_id: str, action: Action, context: Dict[str, Any]) -> AchievementEvent:
    """Construct an event, rejecting empty user ids and unknown actions with ValidationError"""
    if not user_id:
        raise ValidationError("user_id is required", field="user_id", value=user_id, operation="build_event")
    if action not in VALID_ACTIONS:
        raise ValidationError(
            f"Unknown action '{action}'",
            field="action",
            value=action,
            user_id=user_id,
            operation="build_event"
        )
    return AchievementEvent(user_id=user_id, action=action, context=context)
