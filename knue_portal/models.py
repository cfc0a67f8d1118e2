"""Data models and enums for the KNUE portal bridge"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .config import WEEKDAYS


class RetryState(Enum):
    """Menu retry scheduler states"""

    IDLE = "idle"  # No retry pending
    PENDING = "pending"  # One deferred refresh scheduled


class Cafeteria(Enum):
    """Cafeteria kinds published by the menu page"""

    STAFF = "staff"
    DORMITORY = "dormitory"


@dataclass(frozen=True)
class Meals:
    """The three meal slots of one day, each a comma-joined dish list"""

    breakfast: str = ""
    lunch: str = ""
    dinner: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Meals":
        data = data or {}
        return cls(
            breakfast=data.get("breakfast", ""),
            lunch=data.get("lunch", ""),
            dinner=data.get("dinner", ""),
        )


DaySchedule = Dict[str, Meals]


def empty_schedule() -> DaySchedule:
    """Build a schedule with every weekday present and every slot empty"""
    return {day: Meals() for day in WEEKDAYS}


@dataclass(frozen=True)
class MenuSnapshot:
    """One fetched-and-parsed weekly menu, cached whole"""

    staff: DaySchedule = field(default_factory=empty_schedule)
    dormitory: DaySchedule = field(default_factory=empty_schedule)
    last_updated: Optional[str] = None

    def schedule(self, kind: str) -> DaySchedule:
        return self.staff if kind == Cafeteria.STAFF.value else self.dormitory

    def day(self, day: str) -> Dict[str, Dict[str, str]]:
        return {
            "staff": self.staff[day].to_dict(),
            "dormitory": self.dormitory[day].to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "staff": {day: meals.to_dict() for day, meals in self.staff.items()},
            "dormitory": {day: meals.to_dict() for day, meals in self.dormitory.items()},
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MenuSnapshot":
        staff = data.get("staff") or {}
        dormitory = data.get("dormitory") or {}
        return cls(
            staff={day: Meals.from_dict(staff.get(day)) for day in WEEKDAYS},
            dormitory={day: Meals.from_dict(dormitory.get(day)) for day in WEEKDAYS},
            last_updated=data.get("lastUpdated"),
        )


@dataclass(frozen=True)
class Cookie:
    """One cookie captured from an upstream Set-Cookie header"""

    name: str
    value: str
    raw: str

    @classmethod
    def from_set_cookie(cls, header: str) -> "Cookie":
        pair = header.split(";", 1)[0]
        name, _, value = pair.partition("=")
        return cls(name=name.strip(), value=value.strip(), raw=header)

    def is_complete(self) -> bool:
        return bool(self.name and self.value and self.raw)


CookieJar = Tuple[Cookie, ...]


def cookie_header(jar: CookieJar) -> str:
    """Serialize a cookie jar into a Cookie request header value"""
    return "; ".join(f"{cookie.name}={cookie.value}" for cookie in jar)


def jar_to_list(jar: CookieJar) -> List[Dict[str, str]]:
    return [asdict(cookie) for cookie in jar]


def jar_from_list(items: List[Dict[str, str]]) -> CookieJar:
    return tuple(Cookie(name=i["name"], value=i["value"], raw=i.get("raw", "")) for i in items)


@dataclass(frozen=True)
class LoginResult:
    """Raw outcome of an upstream login attempt"""

    status: int
    cookies: CookieJar


@dataclass(frozen=True)
class TokenPair:
    """Bearer credential and refresh handle issued together"""

    access_token: str
    refresh_token: str
    expires_in: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresIn": self.expires_in,
        }


@dataclass
class TripItem:
    """One overnight-trip application parsed from the trip history page"""

    start_date: str
    end_date: str
    seq: str
    status: str
    trip_type: str
    trip_target_place: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "startDate": self.start_date,
            "endDate": self.end_date,
            "seq": self.seq,
            "status": self.status,
            "tripType": self.trip_type,
            "tripTargetPlace": self.trip_target_place,
        }
