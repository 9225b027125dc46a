"""Authentication token model."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class AuthToken(BaseModel):
    """Token returned by ``POST /auth-token/``."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    token: str = Field(validation_alias=AliasChoices("token", "Token"))

    @field_validator("token")
    @classmethod
    def _require_token(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("empty token")
        return value
