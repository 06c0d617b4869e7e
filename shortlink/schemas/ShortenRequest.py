from pydantic import BaseModel, Field, field_validator
from typing import Optional

# Request DTOs
class ShortenRequest(BaseModel):
    # URL and alias shape are checked by URLService so the rules live in one place
    long_url: str
    custom_alias: Optional[str] = None
    # non-positive means no expiry
    ttl_days: Optional[int] = Field(None, le=3650)

    @field_validator('long_url')
    def validate_long_url(cls, v):
        if not v or not v.strip():
            raise ValueError('long_url is required')
        return v.strip()

    @field_validator('custom_alias')
    def blank_alias_is_none(cls, v):
        if v is not None and v == "":
            return None
        return v
