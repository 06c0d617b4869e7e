from pydantic import BaseModel
from datetime import datetime
from typing import Optional

# Response DTOs
class ShortenResponse(BaseModel):
    short_url: str
    short_code: str
    expires_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
