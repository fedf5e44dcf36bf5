from datetime import datetime
from pydantic import BaseModel, field_validator

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    refresh_token: str

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if not value or not value.strip():
            raise ValueError('Refresh token cannot be empty')
        return value.strip()


class IdentityResponse(BaseModel):
    user_id: str
    source_address: str | None
    session_id: str
    expires_at: datetime
