"""Request bodies for the HTTP route layer"""

from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    userNo: str = Field(..., min_length=1, description="Portal user number")
    password: str = Field(..., min_length=1, description="Portal password")


class RefreshRequest(BaseModel):
    refreshToken: str = Field(..., min_length=1)
    userNo: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refreshToken: Optional[str] = None


class TripRequest(BaseModel):
    """Overnight-trip application form, as the portal expects it"""

    tripType: str
    tripTargetPlace: str
    startDate: str = Field(..., description="YYYY-MM-DD")
    endDate: str = Field(..., description="YYYY-MM-DD")
    tripReason: str = ""
    menuId: str = "341"
    enteranceInfoSeq: str
    hakbeon: str


class TripCancelRequest(BaseModel):
    seq: str
    startDate: str
    endDate: str
    menuId: str = "341"
