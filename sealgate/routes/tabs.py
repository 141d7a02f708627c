import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..tabs import TabBridge

log = logging.getLogger(__name__)


class TabsRouter:
    """Websocket endpoint for content scripts running in browser tabs.

    Frames from the content script:
        {"type": "update", "url": ..., "active": ...}   tab navigated or (un)focused
        {"type": "response", "id": ..., "response": ...} reply to a relayed command
    """

    def __init__(self, bridge: TabBridge, allowed_origins: list[str]):
        self.bridge = bridge
        self.ALLOWED_ORIGINS = frozenset(allowed_origins)
        self.router = APIRouter(prefix="/tabs", tags=["Tabs"])
        self.router.add_api_websocket_route("/connect", self.connect)

    def _check_origin(self, websocket: WebSocket) -> bool:
        """Websockets skip CORS, so the handshake Origin is the only gate; browsers always send it."""
        origin = websocket.headers.get("origin")
        return origin is None or origin in self.ALLOWED_ORIGINS

    async def connect(self, websocket: WebSocket, url: str, active: bool = False):
        if not self._check_origin(websocket):
            log.warning("[Seal] Rejected tab connection from: %s", websocket.headers.get("origin"))
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        tab = await self.bridge.register(websocket, url, active)
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    frame = json.loads(text)
                except ValueError:
                    log.debug("[Seal] Ignoring non-JSON frame from tab %s", tab.id)
                    continue
                if not isinstance(frame, dict):
                    continue
                kind = frame.get("type")
                if kind == "update":
                    await self.bridge.update(tab.id, url=frame.get("url"), active=frame.get("active"))
                elif kind == "response" and isinstance(frame.get("id"), int):
                    self.bridge.deliver(tab.id, frame["id"], frame.get("response"))
                else:
                    log.debug("[Seal] Ignoring frame from tab %s: %r", tab.id, kind)
        except WebSocketDisconnect:
            pass
        finally:
            await self.bridge.unregister(tab.id)
