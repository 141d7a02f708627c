import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from ..database import CredentialStore
from ..models import external_message_adapter, AuthTokenHandoff, WebsiteLogout, Ping
from ..utils import origin_of

log = logging.getLogger(__name__)


class ExternalRouter:
    """Messages from web pages. Only the allow-listed origins get past the gate."""

    def __init__(self, store: CredentialStore, allowed_origins: list[str], version: str):
        self.store = store
        self.ALLOWED_ORIGINS = frozenset(allowed_origins)
        self.VERSION = version

        self.router = APIRouter(prefix="/external", tags=["External"])
        self.router.add_api_route("/message", self.dispatch, methods=["POST"])

    def sender_origin(self, request: Request) -> str:
        origin = request.headers.get("origin")
        if origin and origin != "null":
            return origin_of(origin)
        return origin_of(request.headers.get("referer"))

    async def dispatch(self, request: Request):
        # Origin gate runs before the body is even read.
        origin = self.sender_origin(request)
        if origin not in self.ALLOWED_ORIGINS:
            log.warning("[Seal] Rejected external message from: %r", origin)
            raise HTTPException(403, "Unauthorized origin")

        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(400, "Unknown message type")
        if not isinstance(body, dict):
            raise HTTPException(400, "Unknown message type")

        try:
            message = external_message_adapter.validate_python(body)
        except ValidationError as e:
            if any(err["type"] in ("union_tag_invalid", "union_tag_not_found") for err in e.errors()):
                raise HTTPException(400, "Unknown message type")
            if body.get("type") == "SEAL_AUTH_TOKEN":
                raise HTTPException(400, "Missing token or email")
            raise HTTPException(400, f"Invalid {body.get('type')} message")

        if isinstance(message, Ping):
            return {"installed": True, "version": self.VERSION}
        if isinstance(message, AuthTokenHandoff):
            return await self.auth_token_handoff(message)
        if isinstance(message, WebsiteLogout):
            return await self.website_logout(message)
        raise HTTPException(400, "Unknown message type")

    async def auth_token_handoff(self, message: AuthTokenHandoff):
        if not message.token or not message.email:
            raise HTTPException(400, "Missing token or email")
        try:
            await self.store.set(message.token, message.email)
        except Exception as e:
            log.error("[Seal] Could not store handed-off token: %s", e)
            return {"error": str(e)}
        log.info("[Seal] Auth token received for: %s", message.email)
        return {"success": True}

    async def website_logout(self, message: WebsiteLogout):
        try:
            await self.store.clear()
        except Exception as e:
            log.error("[Seal] Could not clear credentials: %s", e)
            return {"error": str(e)}
        log.info("[Seal] Auth cleared via website logout")
        return {"success": True}
