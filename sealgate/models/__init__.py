from .auth import Credential, LoginResult
from .settings import AgentSettings
from .envelope import SealEnvelope, EnvelopeMetadata, Recipient, Verdict, FileInfo
from .messages import (
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
from .external import (
    ExternalMessage,
    external_message_adapter,
    AuthTokenHandoff,
    WebsiteLogout,
    Ping,
)

__all__ = [
    # Auth
    "Credential",
    "LoginResult",
    # Settings
    "AgentSettings",
    # Envelope
    "SealEnvelope",
    "EnvelopeMetadata",
    "Recipient",
    "Verdict",
    "FileInfo",
    # Internal channel
    "InternalAction",
    "internal_action_adapter",
    "CheckAuth",
    "FetchRecipientKeys",
    "SaveMetadata",
    "AttachToGmail",
    "OpenLogin",
    "GetStoredEmail",
    "LoginWithCredentials",
    "Logout",
    # External channel
    "ExternalMessage",
    "external_message_adapter",
    "AuthTokenHandoff",
    "WebsiteLogout",
    "Ping",
]
