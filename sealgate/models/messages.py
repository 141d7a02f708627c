from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Action(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CheckAuth(_Action):
    """Ask the backend whether the stored token is still valid."""
    action: Literal["checkAuth"]


class FetchRecipientKeys(_Action):
    """Look up public keys for several recipients at once."""
    action: Literal["fetchRecipientKeys"]
    emails: list[str] = Field(default=[], description="Recipient emails, in display order")


class SaveMetadata(_Action):
    """Register an encrypted file with the backend."""
    action: Literal["saveMetadata"]
    file_id: str = Field(..., alias="fileId")
    filename: str
    recipient_emails: list[str] = Field(default=[], alias="recipientEmails")
    expires_at: str | None = Field(None, alias="expiresAt")
    sender_email: str | None = Field(None, alias="senderEmail")


class AttachToGmail(_Action):
    """Hand a sealed file to the content script of the active Gmail tab."""
    action: Literal["attachToGmail"]
    seal_file: Any = Field(..., alias="sealFile")
    filename: str


class OpenLogin(_Action):
    action: Literal["openLogin"]


class GetStoredEmail(_Action):
    action: Literal["getStoredEmail"]


class LoginWithCredentials(_Action):
    """Direct login; empty fields are reported by the handler, not by validation."""
    action: Literal["loginWithCredentials"]
    email: str | None = None
    password: str | None = None


class Logout(_Action):
    action: Literal["logout"]


InternalAction = Annotated[
    Union[
        CheckAuth,
        FetchRecipientKeys,
        SaveMetadata,
        AttachToGmail,
        OpenLogin,
        GetStoredEmail,
        LoginWithCredentials,
        Logout,
    ],
    Field(discriminator="action"),
]

internal_action_adapter = TypeAdapter(InternalAction)
