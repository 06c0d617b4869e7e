from pydantic import BaseModel
from datetime import datetime
from typing import Optional

class AnalyticsResponse(BaseModel):
    short_code: str
    click_count: int
    last_accessed: Optional[datetime] = None

    model_config = {"from_attributes": True}
