"""Validation of dropped ``.seal`` files and the access verdict derived from them.

Nothing here touches storage or the network: the raw text of a loaded file
stays in the returned object and lives only as long as the caller keeps it.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import ValidationError

from .models import SealEnvelope, Verdict, FileInfo
from .utils import format_file_size, parse_timestamp

SEAL_SUFFIX = ".seal"
# Payloads are base64 text (~33% larger than the file), so big files go to the web viewer.
MAX_ENVELOPE_SIZE = 10 * 1024 * 1024
REQUIRED_FIELDS = ("version", "fileId", "payload")

UNSUPPORTED_TYPE = "Please select a .seal file. This file type is not supported."
TOO_LARGE = "This file is too large to open in the extension. Please use seal.email/viewer instead."
NOT_A_SEAL_FILE = "This file is not a valid .seal file."
CORRUPTED = "Could not read this file. It may be corrupted."
INCOMPLETE = "This file is not a valid .seal file. It may be corrupted or incomplete."


class EnvelopeError(ValueError):
    """A dropped file was rejected. The message is meant for the user."""


@dataclass
class LoadedEnvelope:
    envelope: SealEnvelope
    raw_text: str = field(repr=False)
    size: int
    verdict: Verdict


def validate_envelope(
    filename: str,
    data: bytes,
    email: str | None,
    max_size: int = MAX_ENVELOPE_SIZE,
    now: datetime | None = None,
) -> LoadedEnvelope:
    """Check a dropped file stage by stage and compute the verdict for *email*.

    Each stage raises :class:`EnvelopeError` with its own message; later
    stages are not attempted.
    """
    if not filename.endswith(SEAL_SUFFIX):
        raise EnvelopeError(UNSUPPORTED_TYPE)

    if len(data) > max_size:
        raise EnvelopeError(TOO_LARGE)

    # A leading byte order mark is dropped, like a browser reading the file as text
    text = data.decode("utf-8-sig", errors="replace")

    # Quick sanity check before full parse
    if not text.startswith("{"):
        raise EnvelopeError(NOT_A_SEAL_FILE)

    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        raise EnvelopeError(CORRUPTED)
    except Exception as e:
        raise EnvelopeError(f"An unexpected error occurred: {e}")

    if not isinstance(document, dict) or any(_is_missing(document.get(k)) for k in REQUIRED_FIELDS):
        raise EnvelopeError(INCOMPLETE)

    try:
        envelope = SealEnvelope.model_validate(document)
    except ValidationError:
        raise EnvelopeError(INCOMPLETE)

    return LoadedEnvelope(
        envelope=envelope,
        raw_text=text,
        size=len(data),
        verdict=compute_verdict(envelope, email, now),
    )


def _is_missing(value) -> bool:
    """Absent in the sense the envelope format uses: null, false, 0, NaN or ""."""
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0 or math.isnan(value)
    return value is None or value == ""


def _display_size(envelope_size, file_size: int) -> int:
    # Declared sizes come from an untrusted file; anything unusable shows the file's own size.
    if isinstance(envelope_size, (int, float)) and math.isfinite(envelope_size) and envelope_size > 0:
        return int(envelope_size)
    return file_size


def compute_verdict(envelope: SealEnvelope, email: str | None, now: datetime | None = None) -> Verdict:
    """Expiry and recipient check for the current identity."""
    now = now or datetime.now(timezone.utc)

    expires_at = parse_timestamp(envelope.metadata.expires_at) if envelope.metadata else None
    is_expired = expires_at is not None and expires_at < now

    access_known = bool(email)
    has_access = False
    if access_known:
        wanted = email.lower()
        has_access = any(r.lower() == wanted for r in envelope.recipient_emails)

    return Verdict(is_expired=is_expired, has_access=has_access, access_known=access_known)


def describe_envelope(loaded: LoadedEnvelope) -> FileInfo:
    """Build the info screen contents for a loaded envelope."""
    envelope, verdict = loaded.envelope, loaded.verdict
    meta = envelope.metadata

    encrypted_at = parse_timestamp(meta.encrypted_at) if meta else None
    expires_at = parse_timestamp(meta.expires_at) if meta else None

    if verdict.is_expired:
        expires = "Expired"
    elif meta and meta.expires_at is not None:
        expires = expires_at.date().isoformat() if expires_at else "Invalid date"
    else:
        expires = "Never"

    emails = envelope.recipient_emails
    if not emails:
        recipients = "Unknown"
    elif len(emails) <= 2:
        recipients = ", ".join(emails)
    else:
        recipients = f"{emails[0]} +{len(emails) - 1} more"

    access = None
    if verdict.access_known:
        access = "Authorized" if verdict.has_access else "Not a recipient"

    if verdict.is_expired:
        open_label = "File has expired"
    elif verdict.access_known and not verdict.has_access:
        open_label = "You are not a recipient"
    else:
        open_label = "Open in Secure Viewer"

    return FileInfo(
        filename=(meta.original_name if meta else None) or "Unknown file",
        size=format_file_size(_display_size(meta.original_size if meta else None, loaded.size)),
        encrypted=encrypted_at.date().isoformat() if encrypted_at else "Unknown",
        expires=expires,
        recipients=recipients,
        recipients_title=", ".join(emails),
        access=access,
        open_enabled=verdict.can_open,
        open_label=open_label,
    )
