import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from bridge_console.config import ConsoleConfig
from bridge_console.console import BridgeConsole
from bridge_console.errors import TransportError, ValidationError
from bridge_console.models import ActionChange, CommandRequest, FocusEvent, ThresholdInputEvent
from bridge_console.view import TIME_WRAPPER
from bridge_console.websocket_manager import WebSocketManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _error_response(error: Exception) -> JSONResponse:
    if isinstance(error, ValidationError):
        return JSONResponse(status_code=422, content={"error": str(error), "field": error.label})
    return JSONResponse(status_code=502, content={"error": str(error)})


def create_app(
    config: Optional[ConsoleConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    config = config or ConsoleConfig.from_env()
    ws_manager = WebSocketManager()
    console = BridgeConsole(config, transport=transport, on_change=ws_manager.broadcast_view)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await console.start()
        logger.info("Bridge console service started")
        yield
        await console.stop()
        logger.info("Bridge console service stopped")

    app = FastAPI(
        title="Bridge Console",
        description="Monitoring and control client for an embedded device bridge",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.console = console
    app.state.ws_manager = ws_manager

    @app.get("/api/status")
    async def status():
        return {
            "service": "Bridge Console",
            "bridge_url": config.bridge_url,
            "polling": console.scheduler.running,
            "message_cursor": console.state.messages.cursor,
            "thresholds_dirty": console.state.guard.dirty,
            "websocket_clients": ws_manager.client_count,
        }

    @app.get("/api/view")
    async def get_view():
        return console.view.snapshot()

    @app.get("/api/log")
    async def get_log():
        store = console.state.messages
        return {"cursor": store.cursor, "count": len(store.lines), "text": store.rendered}

    @app.post("/api/command")
    async def submit_command(request: CommandRequest):
        """Forward an actuator command to the bridge"""
        try:
            receipt = await console.dispatcher.submit(request.target, request.action, request.time)
        except (ValidationError, TransportError) as e:
            await console.notify()
            return _error_response(e)
        await console.notify()
        return {"success": True, "queued_id": receipt.queued_id}

    @app.post("/api/command/action")
    async def change_action(request: ActionChange):
        console.dispatcher.select_action(request.action)
        await console.notify()
        return {"time_visible": not console.view.field(TIME_WRAPPER).hidden}

    @app.post("/api/thresholds/input")
    async def threshold_input(event: ThresholdInputEvent):
        """Record a keystroke in a threshold input; marks the form dirty"""
        try:
            console.state.guard.mark_dirty(event.field, event.value)
        except ValidationError as e:
            return _error_response(e)
        await console.notify()
        return {"dirty": True}

    @app.post("/api/thresholds/focus")
    async def threshold_focus(event: FocusEvent):
        """Move focus to a threshold input, or blur with a null field"""
        try:
            console.state.guard.focus(event.field)
        except ValidationError as e:
            return _error_response(e)
        return {"focused": console.state.guard.focused}

    @app.post("/api/thresholds/submit")
    async def submit_thresholds():
        try:
            snapshot = await console.threshold_form.submit()
        except (ValidationError, TransportError) as e:
            await console.notify()
            return _error_response(e)
        await console.notify()
        return {"success": True, "thresholds": snapshot.thresholds.model_dump()}

    @app.post("/api/thresholds/reload")
    async def reload_thresholds():
        """Drop unsaved edits and show the thresholds stored on the bridge"""
        try:
            snapshot = await console.threshold_form.reload()
        except TransportError as e:
            await console.notify()
            return _error_response(e)
        await console.notify()
        return {"success": True, "thresholds": snapshot.thresholds.model_dump()}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await ws_manager.connect(websocket, console.view)
        try:
            while True:
                # The UI talks to us over HTTP; incoming frames are only keepalives
                data = await websocket.receive_text()
                logger.debug(f"Received from client: {data}")
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
            await ws_manager.disconnect(websocket)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=app.state.console.config.host, port=app.state.console.config.port)
