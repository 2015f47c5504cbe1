"""Data Access Object for notifications and the promotion RPC."""

from supabase import AsyncClient

from amafut.dao.base import BaseDAO
from amafut.dao.profile_dao import parse_role
from amafut.models import Notification, NotificationStatus, NotificationType, Role


class NotificationDAO(BaseDAO[Notification]):
    """DAO for the `notifications` table."""

    table_name = "notifications"
    model_class = Notification

    def __init__(self, client: AsyncClient):
        super().__init__(client)

    async def insert(self, notification: Notification) -> Notification:
        """Insert a notification.

        Returns:
            The created Notification with its id populated
        """
        result = await self.table.insert(self._to_db(notification)).execute()
        return self._to_model(result.data[0])

    async def find_by_user(self, user_id: str) -> list[Notification]:
        """Notifications addressed to a user, newest first."""
        result = await (
            self.table.select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [self._to_model(row) for row in result.data]

    async def set_status(self, notification_id: str, status: NotificationStatus) -> None:
        await self.update(notification_id, {"status": status.value})

    async def confirm_promotion(self, notification_id: str) -> Role:
        """Call the `confirm_promotion` database function.

        Raises:
            RuntimeError: The function refused the promotion
        """
        result = await self.client.rpc(
            "confirm_promotion", {"notification_id": notification_id}
        ).execute()
        data = result.data or {}
        role = parse_role(data.get("new_role"))
        if not data.get("success") or role is None:
            raise RuntimeError(data.get("error") or "Could not confirm the promotion")
        return role

    def _to_model(self, row: dict) -> Notification:
        """Convert database row to Notification model."""
        return Notification(
            id=str(row["id"]) if row.get("id") else None,
            user_id=str(row["user_id"]),
            type=NotificationType(row.get("type") or NotificationType.GENERAL_ALERT),
            title=row.get("title") or "",
            message=row.get("message") or "",
            data=row.get("data") or {},
            status=NotificationStatus(row.get("status") or NotificationStatus.PENDING),
            created_at=row.get("created_at"),
        )

    def _to_db(self, model: Notification) -> dict:
        """Convert Notification model to database row."""
        data = {
            "user_id": model.user_id,
            "type": model.type.value,
            "title": model.title,
            "message": model.message,
            "data": model.data,
            "status": model.status.value,
        }

        if model.id:
            data["id"] = model.id

        return data
