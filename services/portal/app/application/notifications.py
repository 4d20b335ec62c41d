from datetime import datetime, timedelta, timezone
from typing import List, Optional
from shared.core import get_logger
from app.application.resolver import EndpointStrategy
from app.application.schemas import Notification, NotificationFilters, NotificationPageView
from app.application.view_model import PageViewModel

logger = get_logger(__name__)

class NotificationsViewModel(PageViewModel[Notification]):
    """Notification center. Refetches once the refresh interval has elapsed
    since the last fetch, on the next read rather than on a timer."""
    page = "notifications"
    record_type = Notification
    list_keys = ("notifications", "data")

    def strategies(self) -> List[EndpointStrategy]:
        return [EndpointStrategy("notifications")]

    def needs_refresh(self) -> bool:
        if super().needs_refresh():
            return True
        interval = timedelta(seconds=self.settings.NOTIFICATION_REFRESH_SEC)
        return datetime.now(timezone.utc) - self.last_refreshed >= interval

    async def mark_read(self, notification_id: str) -> Optional[Notification]:
        self.find(notification_id)
        body = await self.submit(self.api.put(f"notifications/{notification_id}/read"))
        return await self.patch_or_refresh(body, ("notification", "data"))

    async def mark_all_read(self) -> None:
        await self.submit(self.api.put("notifications/read-all"))
        await self.refresh()

    async def delete(self, notification_id: str) -> None:
        self.find(notification_id)
        await self.submit(self.api.delete(f"notifications/{notification_id}"))
        self.remove(notification_id)

    def unread_count(self) -> int:
        return sum(1 for n in self.items if not n.read)

    def filtered(self, filters: NotificationFilters) -> List[Notification]:
        items = [n for n in self.items if not (filters.unread_only and n.read)]
        if filters.type:
            items = [n for n in items if n.type == filters.type]
        return items

    def view(self, filters: Optional[NotificationFilters] = None) -> NotificationPageView:
        items = self.filtered(filters or NotificationFilters())
        return NotificationPageView(**self.page_state(items), unread_count=self.unread_count())
