from pydantic import BaseModel, Field


class AgentSettings(BaseModel):
    """Agent settings model."""
    api_base: str
    login_url: str
    allowed_origins: list[str] = Field(..., min_length=1)
    extension_id: str
    gmail_url_pattern: str
    max_envelope_size: str
