"""
Pydantic models shared across the gateway.

Field names follow the wire formats of the services we talk to: the token
issuer uses camelCase, the geolocation provider uses snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Dict, List, Optional
from enum import Enum

from toolgate.errors import InvalidArgument


class BackendKind(str, Enum):
    """Where upload tokens are kept between calls."""
    MEMORY = "MEMORY"
    DISK = "DISK"
    DATABASE = "DATABASE"

    @classmethod
    def parse(cls, value) -> "BackendKind":
        """Accept an enum member or a tag in any case."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise InvalidArgument(f"Unknown token backend '{value}'. Must be one of: {allowed}")


class TokenRecord(BaseModel):
    """A bearer token and its validity window, in epoch seconds."""

    token: str = Field(..., min_length=1)
    issuedAt: int
    expiresAt: int

    @model_validator(mode="after")
    def _check_window(self):
        if self.expiresAt <= self.issuedAt:
            raise ValueError("expiresAt must be later than issuedAt")
        return self


class GeoRecord(BaseModel):
    """
    Geolocation facts for one IP address.

    Unknown provider attributes are kept (extra="allow") so a richer upstream
    payload survives the round trip through the cache. Numeric answers for
    text fields (postal, asn) are accepted as strings.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    ip: str
    network: Optional[str] = None
    version: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    region_code: Optional[str] = None
    country: Optional[str] = None
    country_name: Optional[str] = None
    country_code: Optional[str] = None
    country_code_iso3: Optional[str] = None
    country_capital: Optional[str] = None
    country_tld: Optional[str] = None
    continent_code: Optional[str] = None
    in_eu: Optional[bool] = None
    postal: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    utc_offset: Optional[str] = None
    country_calling_code: Optional[str] = None
    currency: Optional[str] = None
    currency_name: Optional[str] = None
    languages: Optional[str] = None
    country_area: Optional[float] = None
    country_population: Optional[int] = None
    asn: Optional[str] = None
    org: Optional[str] = None

    description: Optional[str] = None
    detailedDescription: Optional[str] = None


class UploadedFile(BaseModel):
    """File metadata returned by the upload service."""

    downloadUrl: Optional[str] = None
    webViewLink: Optional[str] = None
    createdTime: Optional[str] = None
    mimeType: Optional[str] = None
    iconLink: Optional[str] = None


class BatchItemResult(BaseModel):
    """Outcome of one item in a batch call."""

    status: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.status:
            return {"status": True, "data": self.data}
        result = {"status": False, "message": self.message}
        if self.code:
            result["code"] = self.code
        return result


class BatchResponse(BaseModel):
    """Envelope returned by every batch endpoint."""

    status: bool
    message: str
    data: List[BatchItemResult] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "data": [item.to_dict() for item in self.data],
        }
