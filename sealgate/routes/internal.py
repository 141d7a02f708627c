import logging
import typing

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from ..client import SealApiClient
from ..database import CredentialStore
from ..models import (
    InternalAction,
    internal_action_adapter,
    CheckAuth,
    FetchRecipientKeys,
    SaveMetadata,
    AttachToGmail,
    OpenLogin,
    GetStoredEmail,
    LoginWithCredentials,
    Logout,
)
from ..tabs import TabBridge, TabRelayError

log = logging.getLogger(__name__)


class InternalRouter:
    """Action requests from the extension's own surfaces (popup, receiver)."""

    def __init__(
        self,
        store: CredentialStore,
        api: SealApiClient,
        tabs: TabBridge,
        extension_origin: str,
        login_url: str,
        gmail_url_pattern: str,
    ):
        self.store = store
        self.api = api
        self.tabs = tabs
        self.EXTENSION_ORIGIN = extension_origin
        self.LOGIN_URL = login_url
        self.GMAIL_URL_PATTERN = gmail_url_pattern

        self._handlers = {
            CheckAuth: self.check_auth,
            FetchRecipientKeys: self.fetch_recipient_keys,
            SaveMetadata: self.save_metadata,
            AttachToGmail: self.attach_to_gmail,
            OpenLogin: self.open_login,
            GetStoredEmail: self.get_stored_email,
            LoginWithCredentials: self.login_with_credentials,
            Logout: self.logout,
        }
        union = typing.get_args(typing.get_args(InternalAction)[0])
        missing = [m.__name__ for m in union if m not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler for actions: {', '.join(missing)}")

        self.router = APIRouter(prefix="/internal", tags=["Internal"])
        self.router.add_api_route("/message", self.dispatch, methods=["POST"])

    def _check_caller(self, request: Request):
        """Only the extension itself may use this channel; web pages always send an Origin."""
        origin = request.headers.get("origin")
        if origin is not None and origin != self.EXTENSION_ORIGIN:
            log.warning("[Seal] Rejected internal message from: %s", origin)
            raise HTTPException(403, "Unauthorized caller")

    async def dispatch(self, request: Request):
        self._check_caller(request)

        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(400, "Request body must be JSON")
        if not isinstance(body, dict):
            raise HTTPException(400, "Request body must be an object")

        try:
            action = internal_action_adapter.validate_python(body)
        except ValidationError as e:
            if any(err["type"] in ("union_tag_invalid", "union_tag_not_found") for err in e.errors()):
                raise HTTPException(400, f"Unsupported action: {body.get('action')}")
            raise HTTPException(400, f"Invalid {body.get('action')} request")

        handler = self._handlers[type(action)]
        try:
            return await handler(action)
        except Exception as e:
            log.error("[Seal] %s failed: %s", action.action, e)
            return {"error": str(e) or type(e).__name__}

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def check_auth(self, action: CheckAuth):
        stored = await self.store.get()
        try:
            data = await self.api.check_auth_status(stored)
        except Exception as e:
            log.error("[Seal] Auth check failed: %s", e)
            return {"authenticated": False, "error": str(e)}

        # The answer is about the token we sent, not whatever is stored now
        if data.get("authenticated") and data.get("email") and stored.token:
            if stored.email != data["email"]:
                await self.store.refresh_email(stored.token, data["email"])
        return data

    async def fetch_recipient_keys(self, action: FetchRecipientKeys):
        return {"recipients": await self.api.fetch_public_keys(action.emails)}

    async def save_metadata(self, action: SaveMetadata):
        return await self.api.save_file_metadata(
            action.file_id,
            action.filename,
            action.recipient_emails,
            action.expires_at,
            action.sender_email,
        )

    async def attach_to_gmail(self, action: AttachToGmail):
        tabs = await self.tabs.query(self.GMAIL_URL_PATTERN, active=True)
        if not tabs:
            raise TabRelayError("No Gmail tab found")

        return await self.tabs.relay(tabs[0], {
            "action": "attachSealFile",
            "sealFile": action.seal_file,
            "filename": action.filename,
        })

    async def open_login(self, action: OpenLogin):
        await self.tabs.open_tab(self.LOGIN_URL)
        return {"success": True}

    async def get_stored_email(self, action: GetStoredEmail):
        credential = await self.store.get()
        return {"email": credential.email}

    async def login_with_credentials(self, action: LoginWithCredentials):
        result = await self.api.login(action.email, action.password)
        if not result.authenticated:
            return {"authenticated": False, "error": result.error}

        try:
            await self.store.set(result.token, result.email)
        except Exception as e:
            log.error("[Seal] Could not store credentials: %s", e)
            return {"authenticated": False, "error": str(e)}
        return {"authenticated": True, "email": result.email}

    async def logout(self, action: Logout):
        await self.store.clear()
        return {"success": True}
