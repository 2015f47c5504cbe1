"""In-app notifications, including promotion invites."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from amafut.models.profile import Role


class NotificationType(StrEnum):
    PROMOTION_INVITE = "promotion_invite"
    GENERAL_ALERT = "general_alert"


class NotificationStatus(StrEnum):
    """Pending and read notifications still count as unread."""

    PENDING = "pending"
    READ = "read"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Notification(BaseModel):
    """A row of the `notifications` table addressed to one user.

    A promotion invite carries `new_role`, `promoter_name` and `team_id`
    in `data`.
    """

    id: str | None = None
    user_id: str
    type: NotificationType = NotificationType.GENERAL_ALERT
    title: str = ""
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.PENDING
    created_at: datetime | None = None

    @property
    def is_unread(self) -> bool:
        return self.status in (NotificationStatus.PENDING, NotificationStatus.READ)

    @property
    def is_answered(self) -> bool:
        return self.status in (NotificationStatus.ACCEPTED, NotificationStatus.REJECTED)

    @property
    def offered_role(self) -> Role | None:
        """The role a promotion invite offers, if it names a known one."""
        try:
            return Role(self.data.get("new_role"))
        except ValueError:
            return None
