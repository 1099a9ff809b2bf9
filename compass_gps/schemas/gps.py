from pydantic import BaseModel
from enum import Enum
from datetime import datetime
from typing import Dict, List, Optional

# Providers with a GPS endpoint on the Compass API


class Provider(str, Enum):
    starlink = "starlink"
    idirect = "idirect"
    newtec = "newtec"
    oneweb = "oneweb"

    @classmethod
    def from_name(cls, name) -> Optional["Provider"]:
        if not isinstance(name, str):
            return None
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None

    @property
    def gps_path(self) -> str:
        return GPS_ENDPOINT_PATHS[self]


# Adding a provider means one Provider member and one entry here
GPS_ENDPOINT_PATHS: Dict[Provider, str] = {
    Provider.starlink: "starlinkgps",
    Provider.idirect: "idirectgps",
    Provider.newtec: "newtecgps",
    Provider.oneweb: "oneweb",
}


class GPSFix(BaseModel):
    latitude: float
    longitude: float
    timestamp: datetime


class GPSFixOut(BaseModel):
    lat: str
    lon: str
    timestamp: int


class ModemRef(BaseModel):
    id: str
    provider: str


class BatchOutcome(str, Enum):
    success = "success"
    stale = "stale"
    error = "error"
    rate_limited = "rate_limited"
    skipped = "skipped"


class BatchResult(BaseModel):
    provider: str
    status: BatchOutcome
    modemId: Optional[str] = None
    modemIds: Optional[List[str]] = None
    message: Optional[str] = None
    retryAfter: Optional[int] = None


class BatchResponse(BaseModel):
    success: bool
    updated: int = 0
    results: List[BatchResult] = []
    error: Optional[str] = None


class GPSQueryResponse(BaseModel):
    data: Dict[str, List[GPSFixOut]]
