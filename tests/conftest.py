import asyncio
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from knue_portal.config import DAY_ANCHORS
from knue_portal.models import Cookie, LoginResult

FIXTURES = Path(__file__).parent / "fixtures"

KOREAN_MEALS = {"breakfast": "아침", "lunch": "점심", "dinner": "저녁"}


def _table(title: str, meals: Dict[str, str]) -> str:
    rows = "".join(
        f"<tr><th>{KOREAN_MEALS[meal]}</th><td>{text}</td></tr>" for meal, text in meals.items()
    )
    return f"<h3>{title}</h3><table>{rows}</table>"


def build_menu_html(
    staff: Optional[Dict[str, Dict[str, str]]] = None,
    dormitory: Optional[Dict[str, Dict[str, str]]] = None,
) -> str:
    """Render a menu page with one section per weekday and the given cells"""
    staff = staff or {}
    dormitory = dormitory or {}
    sections = []
    for anchor, day in DAY_ANCHORS.items():
        sections.append(
            f'<div id="{anchor}">'
            f"{_table('교직원식당', staff.get(day, {}))}"
            f"{_table('기숙사식당', dormitory.get(day, {}))}"
            "</div>"
        )
    return f"<html><body>{''.join(sections)}</body></html>"


EMPTY_MENU_HTML = build_menu_html()


def login_cookies() -> tuple:
    return (
        Cookie.from_set_cookie("JSESSIONID=abc123; Path=/; HttpOnly"),
        Cookie.from_set_cookie("WMONID=xyz789; Path=/; Expires=Wed, 01 Jan 2031 00:00:00 GMT"),
    )


class FakePortalClient:
    """In-memory stand-in for PortalClient; records every call"""

    def __init__(self, html: object = EMPTY_MENU_HTML):
        self.html = html
        self.queue: List[object] = []
        self.menu_calls = 0
        self.gate: Optional[asyncio.Event] = None
        self.login_result = LoginResult(status=303, cookies=login_cookies())
        self.login_calls: List[tuple] = []
        self.pages: Dict[str, str] = {}
        self.post_response = ""
        self.gets: List[tuple] = []
        self.posts: List[tuple] = []

    async def fetch_menu_html(self) -> str:
        self.menu_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        # Scripted responses first, then the steady-state page
        result = self.queue.pop(0) if self.queue else self.html
        if isinstance(result, Exception):
            raise result
        return result

    async def login(self, user_id: str, password: str) -> LoginResult:
        self.login_calls.append((user_id, password))
        if isinstance(self.login_result, Exception):
            raise self.login_result
        return self.login_result

    async def get(self, path, jar, referer=None) -> str:
        self.gets.append((path, jar, referer))
        return self.pages.get(path, "")

    async def post(self, path, jar, form, referer=None) -> str:
        self.posts.append((path, jar, dict(form), referer))
        return self.post_response


@pytest.fixture
def menu_week_html() -> str:
    return (FIXTURES / "menu_week.html").read_text(encoding="utf-8")


@pytest.fixture
def trip_history_html() -> str:
    return (FIXTURES / "trip_history.html").read_text(encoding="utf-8")


@pytest.fixture
def fake_client() -> FakePortalClient:
    return FakePortalClient()
