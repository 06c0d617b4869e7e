from pydantic import BaseModel
from typing import List

class PurgeResponse(BaseModel):
    purged: int
    short_codes: List[str]
