"""Notification feed: arrival messages plus a rotating holiday fact."""

from __future__ import annotations

import random
from collections import deque
from typing import Final, Iterable, Sequence

FUN_FACT_INTERVAL_MS: Final[int] = 9000
# A toast stays on screen this long.
TOAST_TTL_MS: Final[int] = 4200
MAX_TOASTS: Final[int] = 3

FUN_FACTS: Final[tuple[str, ...]] = (
    "Merry Christmas!",
    "Sleigh signal: strong",
    "Nice list verified",
    "Tracking Santa live",
    "December 25 was a widely used Christmas date in the Roman Empire by the 4th century.",
    "The Twelve Days of Christmas run from December 25 to January 5.",
    "Evergreens decorated winter celebrations long before modern Christmas.",
    "St. Nicholas was a 4th-century bishop known for gift-giving legends.",
    "The Dutch \"Sinterklaas\" helped shape the English \"Santa Claus\".",
    "Rudolph the Red-Nosed Reindeer was created in 1939 for a department-store story.",
    "The first commercial Christmas cards are usually dated to 1843 in England.",
    "Tinsel was once made from real silver.",
    "Early electric Christmas lights appeared in the late 1800s.",
    "\"Silent Night\" was first performed in 1818 in Austria.",
    "\"Jingle Bells\" was originally written for Thanksgiving.",
    "\"Xmas\" comes from the Greek letter Chi (X), an abbreviation for \"Christ\".",
    "Boxing Day is December 26 and is a holiday in several countries.",
    "Advent calendars count down the days to Christmas.",
)


class ToastFeed:
    """Decides which toasts to show on each frame.

    A fun fact is due every ``interval_ms`` (the first one an interval after the
    first poll). At most MAX_TOASTS are on screen at once; when more are due,
    arrival messages win over the fact and the newest arrivals win over older ones.
    """

    def __init__(
        self,
        facts: Sequence[str] = FUN_FACTS,
        *,
        interval_ms: int = FUN_FACT_INTERVAL_MS,
        rng: random.Random | None = None,
    ) -> None:
        self._facts = tuple(facts)
        self._interval_ms = interval_ms
        self._rng = rng or random.Random()
        self._next_fact_ms: int | None = None
        self._visible: deque[int] = deque()

    def poll(self, now: int, arrivals: Iterable[str] = ()) -> list[str]:
        """Messages to show now, oldest first."""

        due: list[str] = []
        if self._next_fact_ms is None:
            self._next_fact_ms = now + self._interval_ms
        elif now >= self._next_fact_ms:
            if self._facts:
                due.append(self._rng.choice(self._facts))
            self._next_fact_ms = now + self._interval_ms
        due.extend(arrivals)

        while self._visible and self._visible[0] <= now:
            self._visible.popleft()
        room = MAX_TOASTS - len(self._visible)
        shown = due[-room:] if room > 0 else []
        self._visible.extend(now + TOAST_TTL_MS for _ in shown)
        return shown
