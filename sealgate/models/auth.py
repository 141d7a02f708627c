from pydantic import BaseModel


class Credential(BaseModel):
    """Bearer token and email as held by the credential store."""
    token: str | None = None
    email: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.token is None and self.email is None


class LoginResult(BaseModel):
    """Outcome of a direct email/password login."""
    authenticated: bool
    email: str | None = None
    token: str | None = None
    error: str | None = None
