"""근무일 날짜 키 유틸리티.

Day-key utilities. A workday belongs to the calendar date of the
organizational time zone (``WORKDAY_TIMEZONE``), never the server's local
date, so a server running in UTC still rolls over at local midnight.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from workday_api.config import settings


def utc_now() -> datetime:
    """현재 UTC 시각 — Current aware UTC instant."""
    return datetime.now(timezone.utc)


def date_key_for(instant: datetime, tz_name: str | None = None) -> str:
    """주어진 시각의 조직 타임존 기준 날짜 키를 계산합니다.

    Compute the ``YYYY-MM-DD`` key of an aware instant in the organizational zone.

    Args:
        instant: 타임존 정보가 있는 시각 (Aware datetime)
        tz_name: IANA 타임존 이름, 기본값은 설정값 (IANA zone, defaults to settings)

    Returns:
        str: ``YYYY-MM-DD`` 형식의 날짜 키 (Day key)

    Raises:
        ValueError: naive datetime이 전달된 경우 (When the instant is naive)
    """
    if instant.tzinfo is None:
        raise ValueError("date_key_for() requires an aware datetime")
    zone = ZoneInfo(tz_name or settings.WORKDAY_TIMEZONE)
    return instant.astimezone(zone).strftime("%Y-%m-%d")


def date_key_for_now(tz_name: str | None = None) -> str:
    """오늘의 날짜 키 — evaluated on every call, never cached."""
    return date_key_for(utc_now(), tz_name)
