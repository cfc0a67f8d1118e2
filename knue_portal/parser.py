"""Menu page parser for the KNUE weekly cafeteria menu"""

import re
from typing import Dict, Optional

from bs4 import BeautifulSoup, Tag

from .config import DAY_ANCHORS, DORMITORY_MARKER, MEAL_LABELS, STAFF_MARKER
from .exceptions import MalformedInputError
from .models import Meals, MenuSnapshot, empty_schedule

_COLON_SPACING = re.compile(r":\s*")
_DORMITORY_SEPARATORS = re.compile(r"\s*(?:&amp;|&|\n|\.|/|\+|•|·|\||│)\s*")
_COMMA_SPACING = re.compile(r"\s*,\s*")
_COMMA_RUNS = re.compile(r",{2,}")

_BRACKETED = re.compile(r"\[[^\]]*\]")
_STAFF_SEPARATORS = re.compile(r"&amp;|[&/+•·|│,.\n\[\]]")


class MenuParser:
    """Parse the rendered menu page into a MenuSnapshot"""

    @staticmethod
    def parse(html: str) -> MenuSnapshot:
        """
        Parse the weekly menu page.

        An empty menu is a valid result; completeness is judged by the cache
        engine. The snapshot carries no timestamp so that identical input
        always yields identical output.

        Args:
            html: Raw HTML of the menu page

        Returns:
            Parsed MenuSnapshot (last_updated unset)

        Raises:
            MalformedInputError: If the input is empty or contains no markup
        """
        if not html or not html.strip():
            raise MalformedInputError("Menu page is empty")

        soup = BeautifulSoup(html, "html.parser")
        if soup.find() is None:
            raise MalformedInputError("Menu page contains no markup")

        staff = empty_schedule()
        dormitory = empty_schedule()

        for anchor, day in DAY_ANCHORS.items():
            section = soup.find(id=anchor)
            if section is None:
                continue

            staff_rows = _table_rows(section, STAFF_MARKER)
            if staff_rows:
                staff[day] = _build_meals(staff_rows, format_staff_menu)

            dorm_rows = _table_rows(section, DORMITORY_MARKER)
            if dorm_rows:
                dormitory[day] = _build_meals(dorm_rows, format_dormitory_menu)

        return MenuSnapshot(staff=staff, dormitory=dormitory)


def _find_table(section: Tag, marker: str) -> Optional[Tag]:
    """Return the table right after the h3 whose text contains marker"""
    for heading in section.find_all("h3"):
        if marker not in heading.get_text():
            continue
        table = heading.find_next_sibling()
        if table is not None and table.name == "table":
            return table
    return None


def _table_rows(section: Tag, marker: str) -> Dict[str, str]:
    """Map meal type -> raw cell text for one cafeteria table"""
    table = _find_table(section, marker)
    if table is None:
        return {}

    rows = {}
    for row in table.find_all("tr"):
        header = row.find("th")
        cell = row.find("td")
        if header is None or cell is None:
            continue
        meal_type = MEAL_LABELS.get(header.get_text().strip())
        if meal_type is None:
            continue
        rows[meal_type] = _cell_text(cell)
    return rows


def _cell_text(cell: Tag) -> str:
    for br in cell.find_all("br"):
        br.replace_with("\n")
    return cell.get_text().strip()


def _build_meals(rows: Dict[str, str], formatter) -> Meals:
    return Meals(
        breakfast=formatter(rows.get("breakfast", "")),
        lunch=formatter(rows.get("lunch", "")),
        dinner=formatter(rows.get("dinner", "")),
    )


def format_dormitory_menu(content: str) -> str:
    """
    Normalize a dormitory cell: every delimiter variant becomes one comma.

    "밥 & 국 / 김치" -> "밥,국,김치"
    """
    if not content:
        return ""
    formatted = _COLON_SPACING.sub(":", content)
    formatted = _DORMITORY_SEPARATORS.sub(",", formatted)
    formatted = _COMMA_SPACING.sub(",", formatted)
    formatted = _COMMA_RUNS.sub(",", formatted)
    return formatted.strip(", \t\r\n")


def format_staff_menu(content: str) -> str:
    """
    Normalize a staff cell: drop bracketed annotations (serving times,
    station names, self-corner labels), then split on delimiters and
    whitespace and rejoin the dish tokens with commas.

    "[11:00~14:00] [느티헌] 밥 국/김치" -> "밥,국,김치"
    """
    if not content:
        return ""
    formatted = _BRACKETED.sub(" ", content)
    formatted = _STAFF_SEPARATORS.sub(" ", formatted)
    return ",".join(formatted.split())
