"""
SQLite-backed credential store for the background agent.

Holds the bearer token and the email it belongs to as a key-value pair
(``authToken`` / ``userEmail``) so the session survives agent restarts.
Every operation runs under one lock and one transaction, which keeps the
token and email paired: callers never see one without the other.
"""

import asyncio
from pathlib import Path

import aiosqlite

from .models import Credential

TOKEN_KEY = "authToken"
EMAIL_KEY = "userEmail"
VERSION_KEY = "agentVersion"

SCHEMA = """
CREATE TABLE IF NOT EXISTS storage (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
);
"""


class CredentialStore:
    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / "credentials.db"
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        """Create the data directory and tables if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()

    # ------------------------------------------------------------------
    # Credential pair
    # ------------------------------------------------------------------

    async def get(self) -> Credential:
        """Return the stored pair. An empty store yields an all-absent credential."""
        async with self._lock:
            pair = await self._read((TOKEN_KEY, EMAIL_KEY))
        token, email = pair.get(TOKEN_KEY), pair.get(EMAIL_KEY)
        if token is None or email is None:
            return Credential()
        return Credential(token=token, email=email)

    async def set(self, token: str, email: str) -> None:
        """Store a token and its email together, replacing any previous pair."""
        if not token or not email:
            raise ValueError("Token and email must be stored together")
        async with self._lock:
            async with aiosqlite.connect(self.path) as db:
                await db.executemany(
                    "INSERT OR REPLACE INTO storage (key, value) VALUES (?, ?)",
                    [(TOKEN_KEY, token), (EMAIL_KEY, email)],
                )
                await db.commit()

    async def clear(self, token: str | None = None) -> bool:
        """Remove the token and email.

        With *token*, the pair is only removed while that token is still the
        stored one, so a verdict about an old session can't wipe a newer one.
        """
        async with self._lock:
            async with aiosqlite.connect(self.path) as db:
                if token is not None and await self._stored_token(db) != token:
                    return False
                await db.execute(
                    "DELETE FROM storage WHERE key IN (?, ?)", (TOKEN_KEY, EMAIL_KEY)
                )
                await db.commit()
        return True

    async def refresh_email(self, token: str, email: str) -> bool:
        """Replace the cached email of the session holding *token*.

        Returns False without writing when *token* is no longer the stored one.
        """
        if not token or not email:
            raise ValueError("Token and email are required")
        async with self._lock:
            async with aiosqlite.connect(self.path) as db:
                if await self._stored_token(db) != token:
                    return False
                await db.execute(
                    "INSERT OR REPLACE INTO storage (key, value) VALUES (?, ?)", (EMAIL_KEY, email)
                )
                await db.commit()
        return True

    # ------------------------------------------------------------------
    # Agent lifecycle
    # ------------------------------------------------------------------

    async def record_version(self, version: str) -> str | None:
        """Remember the running version.

        Returns ``"install"`` on the first run, ``"update"`` when the version
        changed since the last run and ``None`` otherwise.
        """
        async with self._lock:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute("SELECT value FROM storage WHERE key = ?", (VERSION_KEY,))
                row = await cursor.fetchone()
                previous = row[0] if row else None
                if previous == version:
                    return None
                await db.execute(
                    "INSERT OR REPLACE INTO storage (key, value) VALUES (?, ?)", (VERSION_KEY, version)
                )
                await db.commit()
        return "install" if previous is None else "update"

    @staticmethod
    async def _stored_token(db: aiosqlite.Connection) -> str | None:
        cursor = await db.execute("SELECT value FROM storage WHERE key = ?", (TOKEN_KEY,))
        row = await cursor.fetchone()
        return row[0] if row else None

    async def _read(self, keys: tuple[str, ...]) -> dict[str, str]:
        placeholders = ",".join("?" for _ in keys)
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                f"SELECT key, value FROM storage WHERE key IN ({placeholders})", keys
            )
            rows = await cursor.fetchall()
        return {key: value for key, value in rows}
