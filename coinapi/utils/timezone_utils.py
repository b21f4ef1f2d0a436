"""
타임존 유틸리티

모든 시각은 UTC 기준으로 비교합니다. SQLite 는 tz 정보를 보존하지 않으므로
DB 에서 읽은 naive datetime 은 UTC 로 간주합니다.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """현재 UTC 시간을 반환합니다."""
    return datetime.now(timezone.utc)


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """임의 타임존(또는 naive) datetime 을 UTC 로 변환합니다."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
