"""
Structured feedback on conflict decisions.

Every accept, ignore or modify action on a conflict is turned into a
FeedbackEvent and handed to an external learning collaborator. Delivery is
fire-and-forget: failures are logged and never reach the analysis.
"""

import asyncio
import inspect
import logging
from datetime import datetime

from sitesched.domain.task import to_date

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
REJECTED = "rejected"
MODIFIED = "modified"


def get_season(day) -> str:
    """Meteorological season (northern hemisphere) for a date."""
    month = to_date(day).month
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "fall"
    return "winter"


class FeedbackEvent:
    def __init__(
        self,
        principle_id,
        event_type1,
        event_type2,
        user_action,
        context=None,
        timestamp=None,
    ):
        self.principle_id = principle_id
        self.event_type1 = event_type1
        self.event_type2 = event_type2
        self.user_action = user_action
        self.context = context or {}
        self.timestamp = timestamp or datetime.now()

    def to_dict(self):
        return {
            "type": "construction_principle",
            "feedback": {
                "principleId": self.principle_id,
                "eventType1": self.event_type1,
                "eventType2": self.event_type2,
                "userAction": self.user_action,
                "context": dict(self.context),
                "timestamp": self.timestamp.isoformat(),
            },
        }

    def __repr__(self):
        return f"FeedbackEvent({self.principle_id!r}, {self.user_action!r})"


def build_feedback(conflict, action, weather=None, now=None, reason=None):
    """
    Describe a user decision on a conflict.

    Args:
        conflict: The Conflict acted upon
        action: "accepted", "rejected" or "modified"
        weather: WeatherSummary in effect during the analysis
        now: Timestamp of the decision
        reason: Optional free-text reason

    Returns:
        FeedbackEvent
    """
    now = now or datetime.now()
    context = {
        "weather": weather.condition if weather is not None else None,
        "projectType": "construction",
        "location": conflict.first.location,
        "season": get_season(now),
    }
    if reason:
        context["reason"] = reason
    second_trade = conflict.second.trade if conflict.second is not None else None
    return FeedbackEvent(
        conflict.rule.id,
        conflict.first.trade,
        second_trade,
        action,
        context=context,
        timestamp=now,
    )


class FeedbackChannel:
    """
    Delivers FeedbackEvents to a sender callable.

    The sender may be a plain function or a coroutine function. Coroutines
    are scheduled on the running loop when there is one.
    """

    def __init__(self, sender=None):
        self.sender = sender
        self.history = []
        self._pending = set()

    def send(self, event: FeedbackEvent) -> bool:
        """
        Hand an event to the sender.

        Returns:
            bool: False if delivery failed synchronously
        """
        self.history.append(event)
        if self.sender is None:
            return True
        try:
            result = self.sender(event)
        except Exception as e:
            logger.warning("Failed to send feedback %r: %s", event, e)
            return False

        if inspect.isawaitable(result):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                try:
                    asyncio.run(_await(result))
                except Exception as e:
                    logger.warning("Failed to send feedback %r: %s", event, e)
                    return False
                return True
            task = loop.create_task(_await(result))
            self._pending.add(task)
            task.add_done_callback(self._on_done)
        return True

    def _on_done(self, task):
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Failed to send feedback: %s", error)

    async def drain(self):
        """Wait for scheduled deliveries; failures are logged, not raised."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


async def _await(awaitable):
    return await awaitable
