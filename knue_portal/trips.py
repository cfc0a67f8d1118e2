"""Dormitory overnight-trip actions proxied through a bearer credential"""

from typing import Dict, List

from loguru import logger

from .api_client import PortalClient
from .config import PORTAL_BASE_URL, TRIP_MENU_ID, TRIP_PATH
from .models import TripItem
from .session import SessionBridge
from .trip_parser import extract_hidden_field, parse_trip_history

TRIP_REFERER = f"{PORTAL_BASE_URL}{TRIP_PATH}?menuId={TRIP_MENU_ID}"

REQUEST_FIELDS = (
    "tripType",
    "tripTargetPlace",
    "startDate",
    "endDate",
    "tripReason",
    "menuId",
    "enteranceInfoSeq",
    "hakbeon",
)
CANCEL_FIELDS = ("seq", "startDate", "endDate", "menuId")


def _month_day(iso_date: str) -> str:
    """"2025-03-14" -> "03.14", the form the trip list renders dates in"""
    return iso_date[5:].replace("-", ".")


class TripService:
    """
    Scrapes and posts the portal's trip pages on behalf of a logged-in user.

    Only proxies and parses; eligibility and quota rules stay with the portal,
    and success is judged by what the returned history page lists.
    """

    def __init__(self, client: PortalClient, sessions: SessionBridge):
        self.client = client
        self.sessions = sessions

    async def fetch_request_page(self, bearer: str) -> Dict[str, str]:
        """Hidden form values the apply form needs"""
        jar = await self.sessions.resolve_cookies(bearer)
        html = await self.client.get(
            f"{TRIP_PATH}?menuId={TRIP_MENU_ID}&tab=1", jar, referer=TRIP_REFERER
        )
        return {
            "enteranceInfoSeq": extract_hidden_field(html, "enteranceInfoSeq") or "",
            "hakbeon": extract_hidden_field(html, "hakbeon") or "",
        }

    async def list_trips(self, bearer: str) -> List[TripItem]:
        jar = await self.sessions.resolve_cookies(bearer)
        html = await self.client.get(
            f"{TRIP_PATH}?menuId={TRIP_MENU_ID}&tab=2", jar, referer=TRIP_REFERER
        )
        trips = parse_trip_history(html)
        logger.info(f"🧳 Found {len(trips)} trip(s)")
        return trips

    async def request_trip(self, bearer: str, params: Dict[str, str]) -> bool:
        """
        Apply for an overnight trip.

        Returns:
            True if the returned history lists a trip with the requested dates
        """
        jar = await self.sessions.resolve_cookies(bearer)
        form = {field: str(params.get(field, "")) for field in REQUEST_FIELDS}
        html = await self.client.post(f"{TRIP_PATH}/apply", jar, form, referer=TRIP_REFERER)

        start, end = _month_day(form["startDate"]), _month_day(form["endDate"])
        registered = any(
            start in trip.start_date and end in trip.end_date
            for trip in parse_trip_history(html)
        )
        if registered:
            logger.success(f"✅ Trip registered {form['startDate']} ~ {form['endDate']}")
        else:
            logger.warning(f"⚠️ Trip not found in history after apply ({form['startDate']})")
        return registered

    async def cancel_trip(self, bearer: str, params: Dict[str, str]) -> bool:
        """
        Cancel an overnight trip.

        Returns:
            True if the seq no longer appears in the returned history
        """
        jar = await self.sessions.resolve_cookies(bearer)
        form = {field: str(params.get(field, "")) for field in CANCEL_FIELDS}
        html = await self.client.post(
            f"{TRIP_PATH}/cancel?menuId={TRIP_MENU_ID}",
            jar,
            form,
            referer=f"{TRIP_REFERER}&tab=2",
        )

        cancelled = all(trip.seq != form["seq"] for trip in parse_trip_history(html))
        if cancelled:
            logger.success(f"✅ Trip {form['seq']} cancelled")
        else:
            logger.warning(f"⚠️ Trip {form['seq']} still listed after cancel")
        return cancelled
