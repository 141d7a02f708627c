from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Recipient(BaseModel):
    """One entry of the envelope's recipient list."""
    model_config = ConfigDict(extra="allow")

    email: str | None = None


class EnvelopeMetadata(BaseModel):
    """Plaintext metadata carried next to the ciphertext."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    original_name: str | None = Field(None, alias="originalName")
    original_size: int | float | None = Field(None, alias="originalSize")
    encrypted_at: str | int | float | None = Field(None, alias="encryptedAt")
    expires_at: str | int | float | None = Field(None, alias="expiresAt")


class SealEnvelope(BaseModel):
    """A parsed ``.seal`` file. The payload is opaque and never inspected."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: int | float | str
    file_id: str | int = Field(..., alias="fileId")
    payload: Any
    metadata: EnvelopeMetadata | None = None
    recipients: list[Recipient] | None = None

    @property
    def recipient_emails(self) -> list[str]:
        return [r.email for r in self.recipients or [] if r.email]


class Verdict(BaseModel):
    """Authorization verdict for the current identity. Derived, never stored."""
    is_expired: bool
    has_access: bool
    access_known: bool

    @property
    def can_open(self) -> bool:
        if self.is_expired:
            return False
        if self.access_known and not self.has_access:
            return False
        return True


class FileInfo(BaseModel):
    """What the info screen shows for a loaded envelope."""
    filename: str
    size: str
    encrypted: str
    expires: str
    recipients: str
    recipients_title: str = ""
    access: str | None = Field(None, description="None hides the access row")
    open_enabled: bool
    open_label: str
