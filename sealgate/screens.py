"""Receiver screen state machine.

    loading -> login | drop        (auth check)
    login   -> drop                (successful sign-in)
    drop    -> login               (logout)
    drop    -> info | error        (file dropped)
    info    -> drop, error -> drop (back; the loaded file is discarded)

The controller talks to the agent only through :class:`AgentConnection`
and never writes file contents anywhere but its own attributes.
"""

import enum
import logging
from typing import Any

import httpx

from .envelope import EnvelopeError, LoadedEnvelope, MAX_ENVELOPE_SIZE, describe_envelope, validate_envelope
from .models import AgentSettings, FileInfo
from .utils import parse_file_size

log = logging.getLogger(__name__)

LOGIN_FAILED = "Login failed. Check your email and password."


class Screen(str, enum.Enum):
    LOADING = "loading"
    LOGIN = "login"
    DROP = "drop"
    INFO = "info"
    ERROR = "error"


class MessageError(Exception):
    """The agent answered a message with ``{"error": ...}`` or could not be reached."""


class InvalidTransition(Exception):
    pass


class AgentConnection:
    """Sends internal action requests to the agent, one response per request."""

    def __init__(self, base_url: str, extension_id: str, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url
        self.origin = f"chrome-extension://{extension_id}"
        self._transport = transport

    async def send(self, action: str, **fields: Any) -> dict:
        try:
            async with httpx.AsyncClient(base_url=self.base_url, transport=self._transport, timeout=None) as client:
                response = await client.post(
                    "/internal/message",
                    json={"action": action, **fields},
                    headers={"Origin": self.origin},
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise MessageError(str(e) or "Agent unreachable") from e

        if isinstance(data, dict) and data.get("error"):
            raise MessageError(data["error"])
        return data if isinstance(data, dict) else {}


class ScreenController:
    def __init__(self, agent: AgentConnection, max_size: int = MAX_ENVELOPE_SIZE):
        self.agent = agent
        self.max_size = max_size
        self.screen = Screen.LOADING
        self.user_email: str | None = None
        self.login_error: str | None = None
        self.error_message: str | None = None
        # Loaded file, in memory only
        self.loaded: LoadedEnvelope | None = None
        self.file_info: FileInfo | None = None

    @classmethod
    def from_settings(cls, settings: AgentSettings, agent_url: str, transport: httpx.AsyncBaseTransport | None = None):
        agent = AgentConnection(agent_url, settings.extension_id, transport=transport)
        return cls(agent, max_size=parse_file_size(settings.max_envelope_size))

    def _require(self, *screens: Screen):
        if self.screen not in screens:
            allowed = ", ".join(s.value for s in screens)
            raise InvalidTransition(f"Expected screen {allowed}, currently on {self.screen.value}")

    def _discard_file(self):
        self.loaded = None
        self.file_info = None
        self.error_message = None

    async def start(self) -> Screen:
        self._require(Screen.LOADING)
        try:
            result = await self.agent.send("checkAuth")
        except MessageError as e:
            log.warning("[Seal] Auth check failed: %s", e)
            result = {}

        if result.get("authenticated") and result.get("email"):
            self.user_email = result["email"]
            self.screen = Screen.DROP
        else:
            self.screen = Screen.LOGIN
        return self.screen

    async def submit_login(self, email: str, password: str) -> Screen:
        self._require(Screen.LOGIN)
        self.login_error = None
        try:
            result = await self.agent.send("loginWithCredentials", email=email.strip(), password=password)
        except MessageError as e:
            self.login_error = str(e) or LOGIN_FAILED
            return self.screen

        if result.get("authenticated") and result.get("email"):
            self.user_email = result["email"]
            self.screen = Screen.DROP
        else:
            self.login_error = result.get("error") or LOGIN_FAILED
        return self.screen

    async def open_web_login(self):
        self._require(Screen.LOGIN)
        await self.agent.send("openLogin")

    async def logout(self) -> Screen:
        self._require(Screen.DROP)
        try:
            await self.agent.send("logout")
        except MessageError:
            # Returning to the login screen must not depend on the agent.
            pass
        self.user_email = None
        self._discard_file()
        self.screen = Screen.LOGIN
        return self.screen

    def load_file(self, filename: str, data: bytes) -> Screen:
        self._require(Screen.DROP)
        try:
            loaded = validate_envelope(filename, data, self.user_email, max_size=self.max_size)
        except EnvelopeError as e:
            self.error_message = str(e)
            self.screen = Screen.ERROR
            return self.screen

        self.loaded = loaded
        self.file_info = describe_envelope(loaded)
        self.screen = Screen.INFO
        return self.screen

    def back(self) -> Screen:
        self._require(Screen.INFO, Screen.ERROR)
        self._discard_file()
        self.screen = Screen.DROP
        return self.screen
