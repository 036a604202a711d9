from __future__ import annotations

from datetime import datetime
from typing import Callable

from django.utils import timezone

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return timezone.now()


class FrozenClock:
    """Clock that always returns the same instant until moved; used by tests and seeding."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def __call__(self) -> datetime:
        return self.instant

    def advance(self, delta) -> None:
        self.instant = self.instant + delta
