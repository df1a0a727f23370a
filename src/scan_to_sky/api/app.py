"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from scan_to_sky.api.models import LoginRequest, ProductEditRequest
from scan_to_sky.app_logging import configure_logging
from scan_to_sky.containers import AppContainer
from scan_to_sky.domain.errors import (
    ApiError,
    AuthError,
    NetworkError,
    ScanToSkyError,
    StorageError,
)
from scan_to_sky.domain.lists import ListSummary
from scan_to_sky.domain.products import HistoryEntry
from scan_to_sky.services.startup import resume_session


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        try:
            await resume_session(
                state_container.session_manager, state_container.list_service
            )
        except ScanToSkyError:
            logger.exception("Failed to resume saved session")
        yield
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(AuthError)
    async def auth_error(_: Request, exc: AuthError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": str(exc)}
        )

    @app.exception_handler(ApiError)
    async def api_error(_: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc), "status_code": exc.status_code},
        )

    @app.exception_handler(NetworkError)
    async def network_error(_: Request, exc: NetworkError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc)},
        )

    @app.exception_handler(StorageError)
    async def storage_error(_: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/session")
    async def session_status(request: Request) -> dict[str, object]:
        """Return the current authentication state."""
        state_container: AppContainer = request.app.state.container
        context = state_container.session_manager.context
        session = context.session
        return {
            "status": context.state.status.value,
            "authenticated": context.is_authenticated,
            "email": session.email if session else None,
        }

    @app.post("/session/login")
    async def login(payload: LoginRequest, request: Request) -> dict[str, object]:
        """Sign in, load lists and select the default list."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_manager.login(
            payload.email, payload.password
        )
        list_service = state_container.list_service
        await list_service.fetch_lists()
        await list_service.select_default_list()
        lists_payload = _lists_payload(list_service.lists, list_service.selected_list)
        return {"email": session.email, **lists_payload}

    @app.post("/session/logout")
    async def logout(request: Request) -> dict[str, str]:
        """Sign out and forget cached lists."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_manager.logout()
        state_container.list_service.reset()
        return {"status": "ok"}

    @app.get("/lists")
    async def lists(request: Request) -> dict[str, object]:
        """Return the cached lists and the selection."""
        state_container: AppContainer = request.app.state.container
        state_container.session_manager.require_session()
        list_service = state_container.list_service
        return _lists_payload(list_service.lists, list_service.selected_list)

    @app.post("/lists/refresh")
    async def refresh_lists(request: Request) -> dict[str, object]:
        """Re-fetch lists from Skylight."""
        state_container: AppContainer = request.app.state.container
        list_service = state_container.list_service
        await list_service.refresh_lists()
        return _lists_payload(list_service.lists, list_service.selected_list)

    @app.post("/lists/{list_id}/select")
    async def select_list(list_id: str, request: Request) -> dict[str, object]:
        """Select one of the cached lists."""
        state_container: AppContainer = request.app.state.container
        state_container.session_manager.require_session()
        list_service = state_container.list_service
        summary = list_service.find_list(list_id)
        if summary is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        await list_service.select_list(summary)
        return _lists_payload(list_service.lists, list_service.selected_list)

    @app.get("/lists/{list_id}/items")
    async def list_items(list_id: str, request: Request) -> dict[str, object]:
        """Return the items of a list."""
        state_container: AppContainer = request.app.state.container
        items = await state_container.list_service.get_list_items(list_id)
        return {"items": [asdict(item) for item in items]}

    @app.get("/products/{barcode}")
    async def open_product(barcode: str, request: Request) -> dict[str, object]:
        """Look up a scanned barcode merged with saved corrections."""
        state_container: AppContainer = request.app.state.container
        view = await state_container.scan_service.open_scan(barcode)
        selected = state_container.list_service.selected_list
        return {
            "found": view.lookup.found,
            "product": asdict(view.display),
            "looked_up": asdict(view.lookup.product),
            "has_override": view.has_override,
            "preselected_list_id": (
                view.preselected_list.id if view.preselected_list else None
            ),
            "selected_list_id": selected.id if selected else None,
        }

    @app.patch("/products/{barcode}/override")
    async def edit_product(
        barcode: str, payload: ProductEditRequest, request: Request
    ) -> dict[str, object]:
        """Save name/brand corrections that differ from the looked-up data."""
        state_container: AppContainer = request.app.state.container
        lookup = await state_container.product_service.lookup(barcode)
        override = await state_container.scan_service.remember_edits(
            lookup.product, payload.name, payload.brand
        )
        return {"override": asdict(override) if override else None}

    @app.delete("/products/{barcode}/override")
    async def clear_override(barcode: str, request: Request) -> dict[str, str]:
        """Drop saved corrections for a barcode."""
        state_container: AppContainer = request.app.state.container
        await state_container.override_store.clear_override(barcode)
        return {"status": "ok"}

    @app.post("/products/{barcode}/add")
    async def add_product(
        barcode: str, payload: ProductEditRequest, request: Request
    ) -> dict[str, object]:
        """Add a scanned product to the selected list."""
        state_container: AppContainer = request.app.state.container
        lookup = await state_container.product_service.lookup(barcode)
        try:
            outcome = await state_container.scan_service.add_to_list(
                lookup.product, payload.name, payload.brand
            )
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc
        return {
            "status": outcome.status,
            "label": outcome.label,
            "list_id": outcome.target.id,
            "list_label": outcome.target.label,
        }

    @app.get("/history")
    async def history(request: Request) -> dict[str, object]:
        """Return the scan history, most recent first."""
        state_container: AppContainer = request.app.state.container
        entries = await state_container.override_store.get_history()
        return {"history": [_history_payload(entry) for entry in entries]}

    @app.delete("/history")
    async def clear_history(request: Request) -> dict[str, str]:
        """Erase the scan history."""
        state_container: AppContainer = request.app.state.container
        await state_container.override_store.clear_history()
        return {"status": "ok"}

    return app


def _lists_payload(
    lists: list[ListSummary], selected: ListSummary | None
) -> dict[str, object]:
    return {
        "lists": [asdict(summary) for summary in lists],
        "selected_list_id": selected.id if selected else None,
    }


def _history_payload(entry: HistoryEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "product": asdict(entry.product),
        "scanned_at": entry.scanned_at.isoformat(),
        "added_to_list": entry.added_to_list,
    }
