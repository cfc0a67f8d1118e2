"""Overnight-trip page parser for the dormitory portal"""

import re
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from .models import TripItem

NO_INFO = "정보 없음"
NO_DATE = "날짜 없음"
NO_SEQ = "시퀀스 없음"

STATUS_APPROVED = "승인됨"
STATUS_CANCELLABLE = "취소 가능"
STATUS_WAITING = "대기중"

APPROVED_NOTICE = "외박신청이 승인되었습니다."

_DATE = re.compile(r"\d{2}\.\d{2}\.\d{2}")
_LEADING_NUMBER = re.compile(r"^\d+\.\s*")


def extract_hidden_field(html: str, name: str) -> Optional[str]:
    """Numeric value of a hidden form input, e.g. enteranceInfoSeq or hakbeon"""
    soup = BeautifulSoup(html or "", "html.parser")
    field = soup.find("input", attrs={"type": "hidden", "name": name})
    if field is None:
        return None
    value = (field.get("value") or "").strip()
    return value if value.isdigit() else None


def parse_trip_history(html: str) -> List[TripItem]:
    """
    Parse every trip application form on the trip history tab.

    Args:
        html: Raw HTML of the trip page

    Returns:
        Parsed trips, in page order (empty if none are listed)
    """
    soup = BeautifulSoup(html or "", "html.parser")
    trips = []

    for form in soup.find_all("form", class_="tripCancelForm"):
        trip_type = _row_text(form, "외박구분")
        if trip_type is not None:
            trip_type = _LEADING_NUMBER.sub("", trip_type)

        seq_input = form.find("input", attrs={"type": "hidden", "name": "seq"})
        seq = (seq_input.get("value") or "").strip() if seq_input is not None else ""

        trips.append(
            TripItem(
                start_date=_row_date(form, "출관일시") or NO_DATE,
                end_date=_row_date(form, "귀관일시") or NO_DATE,
                seq=seq if seq.isdigit() else NO_SEQ,
                status=_status(form),
                trip_type=trip_type or NO_INFO,
                trip_target_place=_row_text(form, "외박지역") or NO_INFO,
            )
        )

    return trips


def _row_cell(form: Tag, label: str) -> Optional[Tag]:
    for header in form.find_all("th"):
        if header.get_text().strip() == label:
            return header.find_next_sibling("td")
    return None


def _row_text(form: Tag, label: str) -> Optional[str]:
    cell = _row_cell(form, label)
    if cell is None:
        return None
    return cell.get_text().strip()


def _row_date(form: Tag, label: str) -> Optional[str]:
    text = _row_text(form, label)
    if not text:
        return None
    match = _DATE.search(text)
    return match.group(0) if match else None


def _status(form: Tag) -> str:
    if APPROVED_NOTICE in form.get_text():
        return STATUS_APPROVED
    if form.find("a", class_="tripCancelBtn") is not None:
        return STATUS_CANCELLABLE
    return STATUS_WAITING
