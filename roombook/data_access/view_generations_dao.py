"""Data access helpers for the shared view generation counters."""

from __future__ import annotations

from typing import Iterable

from .db import execute, get_db, query_one


def get_generation(view: str) -> int:
    db = get_db()
    row = query_one(db, "SELECT generation FROM view_generations WHERE view = ?", (view,))
    return row["generation"] if row else 0


def bump_generations(views: Iterable[str]) -> None:
    db = get_db()
    for view in views:
        execute(
            db,
            """
            INSERT INTO view_generations (view, generation) VALUES (?, 1)
            ON CONFLICT (view) DO UPDATE SET generation = generation + 1
            """,
            (view,),
        )
