"""
Pydantic model for the administrative server credentials.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServerCredentials(BaseModel):
    """Credentials used to connect to the server as an administrator."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(..., min_length=1, description="Administrative user")
    password: str = Field(..., description="Administrative password (may be empty)")
    hostname: str = Field(..., min_length=1, description="Server hostname")
    port: int = Field(..., ge=1, le=65535, description="Server port")

    @field_validator("username", "hostname")
    @classmethod
    def strip_required(cls, v: str) -> str:
        """Reject whitespace-only values."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    def __repr__(self) -> str:
        return (
            f"ServerCredentials(username={self.username!r}, password='***', "
            f"hostname={self.hostname!r}, port={self.port})"
        )

    __str__ = __repr__
