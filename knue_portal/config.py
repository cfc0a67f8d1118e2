"""Configuration constants for the KNUE portal bridge"""

import os
from pathlib import Path

# Upstream portal
PORTAL_BASE_URL = "https://mpot.knue.ac.kr"
LOGIN_URL = f"{PORTAL_BASE_URL}/common/login"
MENU_URL = "https://pot.knue.ac.kr/enview/knue/mobileMenu.html"
TRIP_PATH = "/dormitory/student/trip"
TRIP_MENU_ID = "341"

# Headers the portal's mobile app sends on login
LOGIN_HEADERS = {
    "Pragma": "no-cache",
    "Cache-Control": "no-cache",
    "Origin": PORTAL_BASE_URL,
    "Upgrade-Insecure-Requests": "1",
    "User-Agent": "acanet/knue",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
    "Referer": LOGIN_URL,
    "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
    "X-Requested-With": "kr.acanet.knueapp",
    "Content-Type": "application/x-www-form-urlencoded",
}

# Timeouts
DEFAULT_REQUEST_TIMEOUT = 10.0  # Seconds

# Token lifetimes (in seconds)
ACCESS_TOKEN_TTL = 15 * 60  # 15 minutes
REFRESH_TOKEN_TTL = 30 * 24 * 60 * 60  # 30 days
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "knue-app-secret-key")
JWT_ALGORITHM = "HS256"

# Store keys
TOKEN_KEY_PREFIX = "auth:token:"
REFRESH_KEY_PREFIX = "auth:refresh:"
MENU_CACHE_KEY = "knue:menu:weekly"
DEFAULT_STORE_FILE = Path("./data/knue_store.json")

# Menu retry configuration
MENU_RETRY_DELAY = 60.0  # Seconds between retries of an incomplete menu
MENU_MAX_RETRIES = 600  # ~10 hours at one retry per minute

# Weekly refresh (Monday 00:00 server-local)
WEEKLY_REFRESH_WEEKDAY = 0
WEEKLY_REFRESH_HOUR = 0
WEEKLY_REFRESH_MINUTE = 0

# Fixed vocabulary
WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
STAFF_WEEKDAYS = WEEKDAYS[:5]
MEAL_TYPES = ("breakfast", "lunch", "dinner")
CAFETERIA_KINDS = ("staff", "dormitory")

# Day-section anchors on the menu page
DAY_ANCHORS = {
    "mon_list": "monday",
    "tue_list": "tuesday",
    "wed_list": "wednesday",
    "thu_list": "thursday",
    "fri_list": "friday",
    "sat_list": "saturday",
    "sun_list": "sunday",
}

# Sub-heading markers for the two cafeterias
STAFF_MARKER = "교직원"
DORMITORY_MARKER = "기숙사"

# Row labels shared by both cafeteria tables
MEAL_LABELS = {
    "아침": "breakfast",
    "점심": "lunch",
    "저녁": "dinner",
}

# Server
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
API_VERSION = "1.0.0"
