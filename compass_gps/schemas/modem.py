from pydantic import BaseModel
from enum import Enum
from typing import Optional


class ModemStatus(str, Enum):
    online = "online"
    offline = "offline"
    not_found = "not_found"
    error = "error"


class HealthResponse(BaseModel):
    status: str
    database: str
    timestamp: str
    error: Optional[str] = None


class CacheSweepResponse(BaseModel):
    deleted: int
