"""
GestureFlow Backend - FastAPI Application

This is the main entry point for the GestureFlow backend.
It provides:
- REST API for pointer-driven diagram commands, viewport and display updates
- Gesture input control (enable/disable the classifier link and camera)
- File operations against the configured document store
- WebSocket endpoint broadcasting diagram updates and toasts to renderers
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import (
    APIRouter, Body, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
)
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ..config import Settings, load_settings
from ..core.models import (
    ConnectionEndpointRequest,
    CreateNodeRequest,
    DisplayRequest,
    MoveNodeRequest,
    PanRequest,
    RenameNodeRequest,
    SelectRequest,
    ViewportRequest,
    ZoomRequest,
)
from ..core.validation import DocumentFormatError, parse_document, validate_diagram, validation_summary
from ..core.viewport import DisplayGeometry, ViewportTransform
from .capture import CameraFrameSource, FrameSource
from .cooldown import monotonic_ms
from .diagram_controller import DiagramController
from .file_manager import FileManager
from .gesture_dispatcher import GestureDispatcher, default_policies
from .gesture_link import GestureLink, WebSocketGestureLink
from .gesture_session import GestureSession
from .storage import DocumentStore, HttpDocumentStore, JsonDirectoryStore
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything one running backend shares between requests."""
    settings: Settings
    controller: DiagramController
    viewport: ViewportTransform
    display: DisplayGeometry
    ws_manager: WebSocketManager
    file_manager: Optional[FileManager] = None
    session: Optional[GestureSession] = None
    changes: asyncio.Event = field(default_factory=asyncio.Event)
    toasts: asyncio.Queue = field(default_factory=asyncio.Queue)

    def notify(self, message: str, kind: str = "info"):
        """Queue a user-visible notification for broadcast."""
        level = logging.ERROR if kind == "error" else logging.INFO
        logger.log(level, "Notify [%s]: %s", kind, message)
        self.toasts.put_nowait((message, kind))

    def signal_change(self):
        self.changes.set()

    def state_response(self) -> dict:
        return {"success": True, "state": self.controller.get_state().to_json_dict()}


def get_services(request: Request) -> Services:
    return request.app.state.services


# --- Async change notification ---
# Bridge between sync controller callbacks and async WebSocket broadcasts

async def change_broadcaster(services: Services):
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await services.changes.wait()
        services.changes.clear()
        await services.ws_manager.notify_diagram_updated()


async def toast_broadcaster(services: Services):
    """Background task that forwards queued notifications to WebSocket clients."""
    while True:
        message, kind = await services.toasts.get()
        await services.ws_manager.notify_toast(message, kind)


router = APIRouter(prefix="/api")


# --- Health Check ---

@router.get("/health")
async def health_check(services: Services = Depends(get_services)):
    """Health check endpoint."""
    return {"status": "ok", "connections": services.ws_manager.connection_count}


# --- Diagram State ---

@router.get("/diagram")
async def get_diagram(services: Services = Depends(get_services)):
    """Get the current diagram state."""
    return services.state_response()


@router.post("/diagram/load")
async def load_diagram(payload: Any = Body(...), services: Services = Depends(get_services)):
    """Replace the diagram with a document; malformed documents change nothing."""
    try:
        document = parse_document(payload)
    except DocumentFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    services.controller.load_diagram(document.nodes, document.connections)
    return services.state_response()


@router.post("/diagram/clear")
async def clear_diagram(services: Services = Depends(get_services)):
    services.controller.clear_diagram()
    return services.state_response()


@router.get("/diagram/validate")
async def validate_current_diagram(services: Services = Depends(get_services)):
    """
    Validate the current diagram for structural issues.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = validate_diagram(services.controller.get_state())
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- Node Operations ---

@router.post("/nodes")
async def create_node(request: CreateNodeRequest, services: Services = Depends(get_services)):
    """Create a new node (it becomes the selection)."""
    node_id = services.controller.add_node(request.x, request.y, request.label)
    return {"node_id": node_id, **services.state_response()}


@router.patch("/nodes/{node_id}/position")
async def move_node(node_id: str, request: MoveNodeRequest, services: Services = Depends(get_services)):
    services.controller.update_node_position(node_id, request.x, request.y)
    return services.state_response()


@router.patch("/nodes/{node_id}/label")
async def rename_node(node_id: str, request: RenameNodeRequest, services: Services = Depends(get_services)):
    services.controller.update_node_label(node_id, request.label)
    return services.state_response()


@router.delete("/nodes/{node_id}")
async def delete_node(node_id: str, services: Services = Depends(get_services)):
    """Delete a node and its connections."""
    services.controller.delete_node(node_id)
    return services.state_response()


# --- Connection Operations ---

@router.post("/connections/start")
async def start_connection(request: ConnectionEndpointRequest, services: Services = Depends(get_services)):
    services.controller.start_connection(request.node_id)
    return services.state_response()


@router.post("/connections/complete")
async def complete_connection(request: ConnectionEndpointRequest, services: Services = Depends(get_services)):
    connection_id = services.controller.complete_connection(request.node_id)
    return {"connection_id": connection_id, **services.state_response()}


@router.delete("/connections/{connection_id}")
async def delete_connection(connection_id: str, services: Services = Depends(get_services)):
    services.controller.delete_connection(connection_id)
    return services.state_response()


# --- Selection ---

@router.post("/selection/node")
async def select_node(request: SelectRequest, services: Services = Depends(get_services)):
    services.controller.select_node(request.id)
    return services.state_response()


@router.post("/selection/connection")
async def select_connection(request: SelectRequest, services: Services = Depends(get_services)):
    services.controller.select_connection(request.id)
    return services.state_response()


# --- Viewport & Display ---

@router.get("/viewport")
async def get_viewport(services: Services = Depends(get_services)):
    return {"viewport": services.viewport.to_dict(), "display": services.display.to_dict()}


@router.put("/viewport")
async def set_viewport(request: ViewportRequest, services: Services = Depends(get_services)):
    services.viewport.set(request.offset_x, request.offset_y, request.scale)
    return {"viewport": services.viewport.to_dict()}


@router.post("/viewport/pan")
async def pan_viewport(request: PanRequest, services: Services = Depends(get_services)):
    services.viewport.pan(request.dx, request.dy)
    return {"viewport": services.viewport.to_dict()}


@router.post("/viewport/zoom")
async def zoom_viewport(request: ZoomRequest, services: Services = Depends(get_services)):
    """Zoom around a screen point, by scale delta or by pointer wheel delta."""
    display = services.display
    if request.delta_scale is not None:
        services.viewport.zoom_at(
            request.screen_x, request.screen_y, request.delta_scale,
            display.surface_left, display.surface_top
        )
    elif request.wheel_delta_y is not None:
        services.viewport.wheel_zoom(
            request.screen_x, request.screen_y, request.wheel_delta_y,
            display.surface_left, display.surface_top
        )
    else:
        raise HTTPException(status_code=400, detail="Either delta_scale or wheel_delta_y is required")
    return {"viewport": services.viewport.to_dict()}


@router.put("/display")
async def set_display(request: DisplayRequest, services: Services = Depends(get_services)):
    """Record the window size and rendering surface origin."""
    display = services.display
    display.window_width = request.window_width
    display.window_height = request.window_height
    display.surface_left = request.surface_left
    display.surface_top = request.surface_top
    return {"display": display.to_dict()}


# --- Gesture Input ---

@router.get("/gestures")
async def gesture_status(services: Services = Depends(get_services)):
    return {"success": True, "gestures": services.session.to_dict()}


@router.post("/gestures/enable")
async def enable_gestures(services: Services = Depends(get_services)):
    ok = await services.session.enable()
    return {"success": ok, "gestures": services.session.to_dict()}


@router.post("/gestures/disable")
async def disable_gestures(services: Services = Depends(get_services)):
    await services.session.disable()
    return {"success": True, "gestures": services.session.to_dict()}


# --- File Operations ---

class OpenFileRequest(BaseModel):
    file_path: str


class ExportFileRequest(BaseModel):
    file_path: str


class RenameFileRequest(BaseModel):
    name: str


@router.get("/files")
async def list_files(refresh: bool = False, services: Services = Depends(get_services)):
    """Current file and saved files (newest first)."""
    if refresh:
        await services.file_manager.refresh_saved_files()
    return {"success": True, **services.file_manager.to_dict()}


@router.post("/files/new")
async def new_file(services: Services = Depends(get_services)):
    services.file_manager.create_new_file()
    return {"success": True, **services.file_manager.to_dict()}


@router.post("/files/open")
async def open_file(request: OpenFileRequest, services: Services = Depends(get_services)):
    """Import a diagram JSON file from disk."""
    try:
        services.file_manager.open_file(request.file_path)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=400, detail=f"Cannot read diagram file: {e}")
    except DocumentFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **services.file_manager.to_dict()}


@router.post("/files/save")
async def save_file(services: Services = Depends(get_services)):
    """Save to the document store; local state is kept even if the store fails."""
    ok = await services.file_manager.save()
    return {"success": ok, **services.file_manager.to_dict()}


@router.post("/files/export")
async def export_file(request: ExportFileRequest, services: Services = Depends(get_services)):
    try:
        path = services.file_manager.export_json(request.file_path)
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to export: {e}")
    if path is None:
        raise HTTPException(status_code=400, detail="No file open")
    return {"success": True, "file_path": str(path)}


@router.patch("/files/current")
async def rename_file(request: RenameFileRequest, services: Services = Depends(get_services)):
    services.file_manager.rename_file(request.name)
    return {"success": True, **services.file_manager.to_dict()}


@router.post("/files/close")
async def close_file(services: Services = Depends(get_services)):
    services.file_manager.close_file()
    return {"success": True, **services.file_manager.to_dict()}


@router.post("/files/{file_id}/load")
async def load_saved_file(file_id: str, services: Services = Depends(get_services)):
    if services.file_manager.load_saved_file(file_id) is None:
        raise HTTPException(status_code=404, detail="Saved file not found")
    return {"success": True, **services.file_manager.to_dict()}


@router.delete("/files/{file_id}")
async def delete_saved_file(file_id: str, services: Services = Depends(get_services)):
    ok = await services.file_manager.delete_saved_file(file_id)
    return {"success": ok, **services.file_manager.to_dict()}


# --- App Factory ---

def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[DocumentStore] = None,
    link: Optional[GestureLink] = None,
    frame_source: Optional[FrameSource] = None,
    clock: Callable[[], float] = monotonic_ms,
) -> FastAPI:
    """
    Build the FastAPI app and its services.

    The store, gesture link and frame source default to the ones described
    by `settings`; pass fakes to run without a camera or classifier.
    """
    if settings is None:
        settings = load_settings()

    services = Services(
        settings=settings,
        controller=DiagramController(),
        viewport=ViewportTransform(),
        display=DisplayGeometry(),
        ws_manager=WebSocketManager(),
    )

    if store is None:
        if settings.storage_url:
            store = HttpDocumentStore(settings.storage_url)
        else:
            store = JsonDirectoryStore(settings.storage_dir)
    if link is None:
        link = WebSocketGestureLink(
            settings.gesture_ws_url,
            frame_size=(settings.frame_width, settings.frame_height),
            jpeg_quality=settings.jpeg_quality,
        )
    if frame_source is None:
        frame_source = CameraFrameSource(settings.camera_index, settings.frame_width, settings.frame_height)

    dispatcher = GestureDispatcher(
        services.controller,
        services.viewport,
        lambda: services.display,
        policies=default_policies(settings.action_cooldown_ms, settings.select_cooldown_ms),
        smoothing=settings.smoothing,
        hit_padding=settings.hit_padding,
        mirror=settings.mirror,
        capture_size=(settings.frame_width, settings.frame_height),
        clock=clock,
    )
    services.file_manager = FileManager(services.controller, store, services.notify)
    services.session = GestureSession(
        link, dispatcher, frame_source, services.notify, frame_rate=settings.frame_rate
    )
    services.controller.on_change(services.signal_change)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan handler for startup/shutdown tasks."""
        # Loop-bound primitives are rebuilt for each run of the app
        services.changes = asyncio.Event()
        services.toasts = asyncio.Queue()
        await services.file_manager.refresh_saved_files()

        tasks = [
            asyncio.create_task(change_broadcaster(services)),
            asyncio.create_task(toast_broadcaster(services)),
        ]

        yield

        await services.session.disable()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    app = FastAPI(
        title="GestureFlow API",
        description="Diagram editing by pointer and hand gestures",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.services = services

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Clients connect here to receive diagram_updated and toast events.
        """
        await services.ws_manager.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            await services.ws_manager.disconnect(websocket)

    return app


app = create_app()


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    settings = app.state.services.settings
    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
