import asyncio

import httpx
import pytest

from sealgate.models import Credential
from sealgate.tabs import NO_RECEIVER


class TestCallerGate:
    async def test_web_origin_is_rejected(self, agent, store):
        await store.set("tok-1", "me@example.com")

        response = await agent.post(
            "/internal/message",
            json={"action": "getStoredEmail"},
            headers={"Origin": "https://seal.email"},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized caller"}

    async def test_request_without_origin_is_accepted(self, agent, store):
        await store.set("tok-1", "me@example.com")

        response = await agent.post("/internal/message", json={"action": "getStoredEmail"})

        assert response.json() == {"email": "me@example.com"}


class TestDispatch:
    async def test_unknown_action_gets_an_explicit_error(self, send):
        response = await send("formatDisk")

        assert response.status_code == 400
        assert response.json() == {"error": "Unsupported action: formatDisk"}

    async def test_missing_action(self, agent):
        response = await agent.post(
            "/internal/message", json={"emails": []}, headers={"Origin": "chrome-extension://test-extension"}
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Unsupported action")

    async def test_malformed_payload(self, send):
        response = await send("saveMetadata", filename="x.pdf")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid saveMetadata request"}

    async def test_handler_failure_becomes_error_value(self, send, backend):
        backend.on("POST", "/files", status=500)

        response = await send("saveMetadata", fileId="f1", filename="x.pdf", recipientEmails=[])

        assert response.status_code == 200
        assert response.json() == {"error": "Failed to save file metadata"}


class TestCheckAuth:
    async def test_refreshes_cached_email(self, send, store, backend):
        await store.set("tok-1", "old@example.com")
        backend.on("GET", "/auth/status", body={"authenticated": True, "email": "new@example.com"})

        response = await send("checkAuth")

        assert response.json() == {"authenticated": True, "email": "new@example.com"}
        credential = await store.get()
        assert (credential.token, credential.email) == ("tok-1", "new@example.com")

    async def test_rejected_token_clears_store(self, send, store, backend):
        await store.set("tok-1", "me@example.com")
        backend.on("GET", "/auth/status", status=401)

        response = await send("checkAuth")

        assert response.json() == {"authenticated": False}
        assert (await store.get()).is_empty

    async def test_network_failure_reports_unauthenticated(self, send, store, backend):
        await store.set("tok-1", "me@example.com")

        def boom(request):
            raise ConnectionError("backend down")

        backend.on("GET", "/auth/status", handler=boom)

        response = await send("checkAuth")

        assert response.json() == {"authenticated": False, "error": "backend down"}
        assert (await store.get()).token == "tok-1"

    async def test_login_during_status_call_keeps_new_pair(self, send, store, backend):
        await store.set("tok-a", "a@x.com")

        async def status(request):
            # A different account signs in while the old token is being checked
            await store.set("tok-b", "b@x.com")
            return httpx.Response(200, json={"authenticated": True, "email": "a.renamed@x.com"})

        backend.on("GET", "/auth/status", handler=status)

        await send("checkAuth")

        credential = await store.get()
        assert (credential.token, credential.email) == ("tok-b", "b@x.com")
        assert backend.calls("/auth/status")[0].headers["Authorization"] == "Bearer tok-a"

    async def test_rejection_of_old_token_keeps_new_pair(self, send, store, backend):
        await store.set("tok-a", "a@x.com")

        async def status(request):
            await store.set("tok-b", "b@x.com")
            return httpx.Response(401, json={"error": "expired"})

        backend.on("GET", "/auth/status", handler=status)

        response = await send("checkAuth")

        assert response.json() == {"authenticated": False}
        assert await store.get() == Credential(token="tok-b", email="b@x.com")


class TestRecipientKeys:
    async def test_mixed_batch(self, send, backend):
        backend.on("GET", "/users/public-key/a@x", body={"publicKey": "PK-A"})
        backend.on("GET", "/users/public-key/missing@x", status=404)

        response = await send("fetchRecipientKeys", emails=["a@x", "missing@x"])

        assert response.json() == {
            "recipients": [
                {"found": True, "email": "a@x", "publicKey": "PK-A"},
                {"found": False, "email": "missing@x"},
            ]
        }


class TestLogin:
    async def test_missing_email_makes_no_network_call(self, send, backend, store):
        response = await send("loginWithCredentials", email="", password="pw")

        assert response.json() == {"authenticated": False, "error": "Email and password are required"}
        assert backend.requests == []
        assert (await store.get()).is_empty

    async def test_success_stores_pair(self, send, backend, store):
        backend.on("POST", "/auth/login", body={"authenticated": True, "email": "me@example.com", "token": "tok-9"})

        response = await send("loginWithCredentials", email="me@example.com", password="pw")

        assert response.json() == {"authenticated": True, "email": "me@example.com"}
        credential = await store.get()
        assert (credential.token, credential.email) == ("tok-9", "me@example.com")

    async def test_failure_does_not_touch_store(self, send, backend, store):
        await store.set("tok-1", "me@example.com")
        backend.on("POST", "/auth/login", status=401, body={"error": "Invalid email or password"})

        response = await send("loginWithCredentials", email="me@example.com", password="nope")

        assert response.json() == {"authenticated": False, "error": "Invalid email or password"}
        assert (await store.get()).token == "tok-1"


class TestLocalActions:
    async def test_get_stored_email_without_network(self, send, store, backend):
        await store.set("tok-1", "me@example.com")

        response = await send("getStoredEmail")

        assert response.json() == {"email": "me@example.com"}
        assert backend.requests == []

    async def test_get_stored_email_when_logged_out(self, send):
        assert (await send("getStoredEmail")).json() == {"email": None}

    async def test_logout_clears_store(self, send, store):
        await store.set("tok-1", "me@example.com")

        response = await send("logout")

        assert response.json() == {"success": True}
        assert (await store.get()).is_empty

    async def test_open_login(self, send, tabs):
        response = await send("openLogin")

        assert response.json() == {"success": True}
        assert tabs.opened == ["https://seal.email/login?from=extension"]


class FakeContentScript:
    """Answers relayed commands the way the Gmail content script does."""

    def __init__(self, bridge, reply=None, fail=False):
        self.bridge = bridge
        self.reply = reply
        self.fail = fail
        self.tab = None
        self.received = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.received.append(data)
        asyncio.get_running_loop().call_soon(self.bridge.deliver, self.tab.id, data["id"], self.reply)


class TestAttachToGmail:
    async def test_no_gmail_tab(self, send):
        response = await send("attachToGmail", sealFile={"fileId": "f1"}, filename="x.seal")

        assert response.json() == {"error": "No Gmail tab found"}

    async def test_background_gmail_tab_is_not_used(self, send, tabs):
        script = FakeContentScript(tabs, reply={"success": True})
        script.tab = await tabs.register(script, "https://mail.google.com/mail/u/0/", active=False)

        response = await send("attachToGmail", sealFile={"fileId": "f1"}, filename="x.seal")

        assert response.json() == {"error": "No Gmail tab found"}
        assert script.received == []

    async def test_relays_to_active_gmail_tab(self, send, tabs):
        other = FakeContentScript(tabs, reply={"success": False})
        other.tab = await tabs.register(other, "https://example.com/", active=True)
        script = FakeContentScript(tabs, reply={"success": True, "attached": "x.seal"})
        script.tab = await tabs.register(script, "https://mail.google.com/mail/u/0/#inbox", active=True)

        response = await send("attachToGmail", sealFile={"fileId": "f1"}, filename="x.seal")

        assert response.json() == {"success": True, "attached": "x.seal"}
        assert other.received == []
        assert script.received[0]["message"] == {
            "action": "attachSealFile",
            "sealFile": {"fileId": "f1"},
            "filename": "x.seal",
        }

    async def test_relay_failure_is_reported(self, send, tabs):
        script = FakeContentScript(tabs, fail=True)
        script.tab = await tabs.register(script, "https://mail.google.com/mail/u/0/", active=True)

        response = await send("attachToGmail", sealFile="{}", filename="x.seal")

        assert response.json() == {"error": NO_RECEIVER}


@pytest.mark.parametrize("first, second", [("logout", "checkAuth"), ("checkAuth", "logout")])
async def test_concurrent_logout_and_check_auth_keep_pair_intact(send, store, backend, first, second):
    await store.set("tok-1", "old@example.com")
    backend.on("GET", "/auth/status", body={"authenticated": True, "email": "new@example.com"})

    await asyncio.gather(send(first), send(second))

    credential = await store.get()
    assert (credential.token is None) == (credential.email is None)
