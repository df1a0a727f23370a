"""Resume a persisted session when the application starts."""

import logging
from http import HTTPStatus

from scan_to_sky.domain.errors import ApiError, NetworkError
from scan_to_sky.domain.sessions import Session
from scan_to_sky.services.lists import ListSyncService
from scan_to_sky.services.sessions import SessionManager

_logger = logging.getLogger(__name__)


async def resume_session(
    session_manager: SessionManager, list_service: ListSyncService
) -> Session | None:
    """Restore the session, load lists and restore the selected list.

    A restored credential rejected by the list service means the session is
    stale, so it is logged out.
    """
    session = await session_manager.restore_session()
    if session is None:
        return None
    try:
        await list_service.fetch_lists()
    except ApiError as exc:
        if exc.status_code == HTTPStatus.UNAUTHORIZED:
            _logger.info("Restored session rejected, logging out")
            await session_manager.logout()
            list_service.reset()
            return None
        list_service.reporter.report("Failed to load lists", exc)
        return session
    except NetworkError as exc:
        list_service.reporter.report("Failed to load lists", exc)
        return session
    await list_service.restore_selection()
    return session
