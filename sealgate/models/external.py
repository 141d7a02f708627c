from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class AuthTokenHandoff(BaseModel):
    """Sent by the website after a successful login."""
    type: Literal["SEAL_AUTH_TOKEN"]
    token: str | None = None
    email: str | None = None


class WebsiteLogout(BaseModel):
    """Sent by the website when the user logs out there."""
    type: Literal["SEAL_LOGOUT"]


class Ping(BaseModel):
    """Presence check; needs no authentication."""
    type: Literal["SEAL_PING"]


ExternalMessage = Annotated[
    Union[AuthTokenHandoff, WebsiteLogout, Ping],
    Field(discriminator="type"),
]

external_message_adapter = TypeAdapter(ExternalMessage)
