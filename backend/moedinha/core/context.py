from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from zoneinfo import ZoneInfo

from moedinha.core.config import get_settings


Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(ZoneInfo(get_settings().timezone))


def fixed_clock(moment: datetime) -> Clock:
    return lambda: moment


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, on which organization, and what time it is.

    Built once per request (or once per org inside a batch job) and passed into
    every service call instead of re-resolving the session each time.
    """

    user_id: int | None
    org_id: int
    clock: Clock = field(default=system_clock, compare=False)

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.clock().date()

    def for_org(self, org_id: int) -> RequestContext:
        return replace(self, user_id=None, org_id=org_id)
