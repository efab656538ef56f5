"""Named view caches that state-changing operations mark stale.

Each worker process keeps its own memo, but the generation of every view lives
in the database. Bumping it from any process (a web worker, the check-in sweep
or the sheet sync CLI) makes every other worker drop its copy on the next read.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Hashable

from flask import Flask, current_app

from ..data_access import view_generations_dao

BOOKING = "booking"
SCHEDULE = "schedule"
DASHBOARD = "dashboard"
ANALYTICS = "analytics"
RESERVATION_VIEWS = (BOOKING, SCHEDULE, DASHBOARD, ANALYTICS)


class ViewCache:
    """In-process memo of rendered view data, grouped by view key."""

    def __init__(self, app: Flask | None = None) -> None:
        self._lock = threading.Lock()
        # view -> (generation the entries were built under, {key: (stamp, value)})
        self._buckets: dict[str, tuple[int, dict[Hashable, tuple[Hashable, Any]]]] = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions["view_cache"] = self

    def get_or_build(
        self,
        view: str,
        key: Hashable,
        builder: Callable[[], Any],
        stamp: Hashable = None,
    ) -> Any:
        """Return the memoised value for ``key``, building it when missing or stale.

        ``stamp`` lets a key hold a single value that expires on its own, such as
        the minute a dashboard was computed for: a different stamp replaces the
        entry instead of adding a new one.
        """

        generation = view_generations_dao.get_generation(view)
        with self._lock:
            held = self._buckets.get(view)
            if held is not None and held[0] == generation and key in held[1]:
                held_stamp, value = held[1][key]
                if held_stamp == stamp:
                    return value
        value = builder()
        with self._lock:
            held = self._buckets.get(view)
            if held is None or held[0] < generation:
                held = (generation, {})
                self._buckets[view] = held
            if held[0] == generation:
                held[1][key] = (stamp, value)
        return value

    def invalidate(self, *views: str) -> None:
        view_generations_dao.bump_generations(views)
        with self._lock:
            for view in views:
                self._buckets.pop(view, None)

    def version(self, view: str) -> int:
        return view_generations_dao.get_generation(view)

    def entry_count(self, view: str) -> int:
        with self._lock:
            held = self._buckets.get(view)
            return len(held[1]) if held else 0


def get_view_cache() -> ViewCache:
    return current_app.extensions["view_cache"]


def invalidate_reservation_views() -> None:
    get_view_cache().invalidate(*RESERVATION_VIEWS)
