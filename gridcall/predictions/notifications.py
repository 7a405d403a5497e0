"""In-app notifications for scoring events."""

from __future__ import annotations

import logging
from typing import Optional

from .models import Notification, Race, ScoredSessionType

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Records notifications for users. Delivery channels live elsewhere."""

    def notify_scored(self, user_id: int, race_id: int, session_type: str, total_points: int) -> Notification:
        race = Race.objects.filter(pk=race_id).first()
        race_name = race.name if race else f"race {race_id}"
        label = ScoredSessionType(session_type).label
        notification = Notification.objects.create(
            user_id=user_id,
            kind=Notification.Kind.SCORED,
            title=f"{race_name} {label} scored",
            message=f"Your {label.lower()} prediction for {race_name} earned {total_points} points.",
            race=race,
            data={'session_type': session_type, 'total_points': total_points},
        )
        logger.debug("Notified user %s about %s points for race %s", user_id, total_points, race_id)
        return notification

    def notify_badge_unlocked(
        self,
        user_id: int,
        badge_code: str,
        race_id: Optional[int] = None,
        *,
        badge_name: Optional[str] = None,
    ) -> Notification:
        name = badge_name or badge_code
        return Notification.objects.create(
            user_id=user_id,
            kind=Notification.Kind.BADGE_UNLOCKED,
            title=f"Badge unlocked: {name}",
            message=f"You unlocked the {name} badge.",
            race_id=race_id,
            data={'badge_code': badge_code},
        )
