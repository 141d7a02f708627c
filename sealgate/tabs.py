"""Registry of browser tabs whose content scripts are connected to the agent.

Content scripts hold a websocket open (see ``routes/tabs.py``). The agent can
relay a command to one of them and wait for its single reply.
"""

import asyncio
import itertools
import logging
import webbrowser
from dataclasses import dataclass, field
from typing import Any, Protocol

from .utils import url_matches

log = logging.getLogger(__name__)

NO_RECEIVER = "Could not establish connection. Receiving end does not exist."


class TabRelayError(Exception):
    """A relayed command could not be delivered or was not answered."""


class TabSocket(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass
class Tab:
    id: int
    url: str
    active: bool
    socket: TabSocket = field(repr=False)
    # request id -> future waiting for the content script's reply
    pending: dict[int, asyncio.Future] = field(default_factory=dict, repr=False)


class TabBridge:
    def __init__(self):
        self._lock = asyncio.Lock()
        self._tabs: dict[int, Tab] = {}
        self._tab_ids = itertools.count(1)
        self._request_ids = itertools.count(1)

    async def register(self, socket: TabSocket, url: str, active: bool = False) -> Tab:
        async with self._lock:
            tab = Tab(id=next(self._tab_ids), url=url, active=active, socket=socket)
            self._tabs[tab.id] = tab
        log.debug("[Seal] Tab %s connected: %s", tab.id, url)
        return tab

    async def update(self, tab_id: int, url: str | None = None, active: bool | None = None) -> None:
        async with self._lock:
            tab = self._tabs.get(tab_id)
            if tab is None:
                return
            if url is not None:
                tab.url = url
            if active is not None:
                tab.active = active

    async def unregister(self, tab_id: int) -> None:
        """Drop a tab and fail whatever is still waiting on it."""
        async with self._lock:
            tab = self._tabs.pop(tab_id, None)
        if tab is None:
            return
        for future in tab.pending.values():
            if not future.done():
                future.set_exception(TabRelayError(NO_RECEIVER))
        tab.pending.clear()
        log.debug("[Seal] Tab %s disconnected", tab_id)

    async def query(self, pattern: str, active: bool | None = True) -> list[Tab]:
        """Connected tabs whose URL matches *pattern*, optionally filtered on focus."""
        async with self._lock:
            tabs = list(self._tabs.values())
        return [
            t for t in tabs
            if url_matches(pattern, t.url) and (active is None or t.active == active)
        ]

    async def relay(self, tab: Tab, message: dict) -> Any:
        """Send *message* to the tab's content script and return its reply."""
        async with self._lock:
            if tab.id not in self._tabs:
                raise TabRelayError(NO_RECEIVER)
            request_id = next(self._request_ids)
            future = asyncio.get_running_loop().create_future()
            tab.pending[request_id] = future

        try:
            await tab.socket.send_json({"id": request_id, "message": message})
        except Exception as e:
            tab.pending.pop(request_id, None)
            raise TabRelayError(NO_RECEIVER) from e

        try:
            return await future
        finally:
            tab.pending.pop(request_id, None)

    def deliver(self, tab_id: int, request_id: int, response: Any) -> bool:
        """Resolve a pending relay. Late or duplicate replies are ignored."""
        tab = self._tabs.get(tab_id)
        if tab is None:
            return False
        future = tab.pending.get(request_id)
        if future is None or future.done():
            return False
        future.set_result(response)
        return True

    async def open_tab(self, url: str) -> None:
        """Open *url* in a new browser tab."""
        await asyncio.to_thread(webbrowser.open_new_tab, url)
