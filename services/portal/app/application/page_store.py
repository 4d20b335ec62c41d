from typing import Optional, Tuple, Type, TypeVar
from cachetools import TTLCache
from shared.core import get_logger
from app.auth_local import SessionContext
from app.core_settings import Settings
from app.application.view_model import PageViewModel
from app.infrastructure.api_client import PortalApi

logger = get_logger(__name__)

VM = TypeVar("VM", bound=PageViewModel)

class PageStateStore:
    """Per-user page state, kept between requests and expired after inactivity.

    Keys are (user_id, page). A view-model is rebound to the caller's session
    and API client every time it is handed out.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._pages: TTLCache = TTLCache(maxsize=settings.PAGE_STATE_MAX_ENTRIES, ttl=settings.PAGE_STATE_TTL_SEC)

    def get(self, view_model_cls: Type[VM], session: SessionContext, api: PortalApi) -> VM:
        key = (session.user.id, view_model_cls.page)
        view_model: Optional[VM] = self._pages.get(key)
        if view_model is None:
            view_model = view_model_cls(session, api, self.settings, invalidate=self.mark_stale)
            logger.debug("Page state created", extra={'extra_fields': {'page': view_model_cls.page}})
        else:
            view_model.bind(session, api)
        # Re-insert so the TTL counts from the last access
        self._pages[key] = view_model
        return view_model

    def mark_stale(self, user_id: str, page: str) -> None:
        """Force the next read of another user's page to refetch.

        Pages not held yet start out stale, so there is nothing to record.
        """
        view_model = self._pages.get((user_id, page))
        if view_model is None:
            return
        view_model.mark_stale()
        logger.info("Page marked stale", extra={'extra_fields': {'target_user': user_id, 'page': page}})

    def clear(self) -> None:
        self._pages.clear()

    def __len__(self) -> int:
        return len(self._pages)

    def keys(self) -> Tuple[Tuple[str, str], ...]:
        return tuple(self._pages.keys())
