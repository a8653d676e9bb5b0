"""
Connection and Session Models

Both are small frozen records that get written to local storage as JSON.
"""

from pydantic import BaseModel, ConfigDict, Field


class Credentials(BaseModel):
    """
    Remote connection credentials (Supabase project URL and anon key).

    Immutable once accepted. Changing them means building a new connection.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    endpoint: str = Field(
        ...,
        min_length=1,
        description="Project URL of the remote store"
    )
    key: str = Field(
        ...,
        min_length=1,
        description="Anon/API key for the remote store"
    )

    def __repr__(self) -> str:
        # Keep the key out of logs and tracebacks
        return f"Credentials(endpoint={self.endpoint!r}, key='***')"

    __str__ = __repr__


class Session(BaseModel):
    """The authenticated user. Exists only while logged in."""
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str = Field(..., min_length=1, description="Row id in the users table")
    username: str = Field(..., min_length=1)

    @property
    def user_id(self) -> str:
        return self.id
