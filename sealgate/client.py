"""HTTP client for the Seal backend API.

Each call is a single round trip. The bearer token is read from the
credential store on every request and attached only when one is stored.
"""

import asyncio
import logging
from urllib.parse import quote

import httpx

from .database import CredentialStore
from .models import Credential, LoginResult

log = logging.getLogger(__name__)


class ApiError(Exception):
    """The backend answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SealApiClient:
    def __init__(self, base_url: str, store: CredentialStore, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.store = store
        # Injected by tests; None means a real network transport.
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        # No timeout: a slow backend only delays the response.
        return httpx.AsyncClient(base_url=self.base_url, transport=self._transport, timeout=None)

    async def _auth_headers(self, credential: Credential | None = None) -> dict[str, str]:
        if credential is None:
            credential = await self.store.get()
        headers = {"Content-Type": "application/json"}
        if credential.token:
            headers["Authorization"] = f"Bearer {credential.token}"
        return headers

    async def login(self, email: str | None, password: str | None) -> LoginResult:
        """Log in with email and password. Never raises."""
        if not email or not password:
            return LoginResult(authenticated=False, error="Email and password are required")

        try:
            async with self._client() as client:
                response = await client.post("/auth/login", json={"email": email, "password": password})
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            log.error("[Seal] Extension login failed: %s", e)
            return LoginResult(authenticated=False, error=str(e) or "Login failed")

        if not isinstance(data, dict):
            return LoginResult(authenticated=False, error="Login failed")
        if not response.is_success or not data.get("authenticated"):
            return LoginResult(authenticated=False, error=data.get("error") or "Login failed")
        if not data.get("token") or not data.get("email"):
            return LoginResult(authenticated=False, error="Login response is missing the token")

        return LoginResult(authenticated=True, email=data["email"], token=data["token"])

    async def check_auth_status(self, credential: Credential | None = None) -> dict:
        """Ask the backend whether the stored token is valid.

        The backend is the source of truth: a rejected answer, or one without
        an email, clears the local credentials. Only the session the request
        was made with is cleared; a pair stored meanwhile is left alone.
        """
        if credential is None:
            credential = await self.store.get()
        headers = await self._auth_headers(credential)
        async with self._client() as client:
            response = await client.get("/auth/status", headers=headers)

        if not response.is_success:
            await self._forget(credential)
            return {"authenticated": False}

        data = response.json()
        if not data.get("authenticated") or not data.get("email"):
            await self._forget(credential)
        return data

    async def _forget(self, credential: Credential):
        # Without a token there was no session to reject.
        if credential.token:
            await self.store.clear(credential.token)

    async def fetch_public_key(self, email: str) -> dict:
        """Fetch a recipient's public key. A 404 means the user has no key yet."""
        headers = await self._auth_headers()
        async with self._client() as client:
            response = await client.get(f"/users/public-key/{quote(email, safe='')}", headers=headers)

        if response.status_code == 404:
            return {"found": False, "email": email}
        if not response.is_success:
            raise ApiError(f"Failed to fetch key for {email}", response.status_code)

        data = response.json()
        return {"found": True, "email": email, "publicKey": data.get("publicKey")}

    async def fetch_public_keys(self, emails: list[str]) -> list[dict]:
        """Fetch several keys concurrently, one result per email, in order.

        A failed lookup shows up as ``found: False`` with its error; it does
        not fail the batch.
        """
        results = await asyncio.gather(
            *(self.fetch_public_key(email) for email in emails), return_exceptions=True
        )
        recipients = []
        for email, result in zip(emails, results):
            if isinstance(result, Exception):
                log.error("[Seal] Key fetch failed for %s: %s", email, result)
                recipients.append({"found": False, "email": email, "error": str(result)})
            else:
                recipients.append(result)
        return recipients

    async def save_file_metadata(
        self,
        file_id: str,
        filename: str,
        recipient_emails: list[str],
        expires_at: str | None,
        sender_email: str | None,
    ) -> dict:
        """Register an encrypted file with the backend."""
        headers = await self._auth_headers()
        async with self._client() as client:
            response = await client.post(
                "/files",
                headers=headers,
                json={
                    "fileId": file_id,
                    "filename": filename,
                    "recipientEmails": recipient_emails,
                    "expiresAt": expires_at,
                    "senderEmail": sender_email,
                },
            )
        if not response.is_success:
            log.error("[Seal] Metadata save failed with status %s", response.status_code)
            raise ApiError("Failed to save file metadata", response.status_code)
        return response.json()
