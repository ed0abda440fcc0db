from pydantic import BaseModel, Field, field_validator
from datetime import datetime


class OperatorCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    name: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator('username')
    @classmethod
    def normalize_username(cls, v: str) -> str:
        cleaned = v.strip().lower()
        if not cleaned:
            raise ValueError('El usuario no puede estar vacío')
        return cleaned


class OperatorOut(BaseModel):
    id: int
    username: str
    name: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    operator: OperatorOut
