"""SQLite storage adapter.

Implements the core EntityStorePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from typing import Iterable, Optional

from core.errors import FatalStartupError, PersistenceError
from core.models import TrackedEntity


class SQLiteEntityStore:
    """Thin SQLite wrapper that satisfies the EntityStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - entities: tracked corporations with their watermarks and templates
        - excluded_locations: solar system or region ids ignored per entity
        """

        try:
            with self._connect() as conn:
                # entities keeps one row per tracked corporation so we can safely
                # restart the app without reposting old kills.
                # Fields:
                # - id: auto-increment primary key
                # - external_id: zKillboard corporation id (UNIQUE)
                # - name: display name used in logs
                # - last_kill_id / last_loss_id: highest event id processed per feed
                # - kill_template / loss_template: message templates
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS entities (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        external_id INTEGER NOT NULL UNIQUE,
                        name TEXT NOT NULL DEFAULT '',
                        last_kill_id INTEGER NOT NULL DEFAULT 0,
                        last_loss_id INTEGER NOT NULL DEFAULT 0,
                        kill_template TEXT NOT NULL DEFAULT '',
                        loss_template TEXT NOT NULL DEFAULT ''
                    )
                    """
                )
                # excluded_locations lists ids that suppress notifications.
                # Fields:
                # - entity_id: owning entity
                # - location_id: solar system id or region id
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS excluded_locations (
                        entity_id INTEGER NOT NULL REFERENCES entities(id),
                        location_id INTEGER NOT NULL,
                        PRIMARY KEY (entity_id, location_id)
                    )
                    """
                )
        except sqlite3.Error as e:
            raise FatalStartupError(f"Failed to initialize database {self._db_path}: {e}") from e

    def _row_to_entity(self, row: sqlite3.Row, excluded: Iterable[int]) -> TrackedEntity:
        return TrackedEntity(
            id=int(row["id"]),
            external_id=int(row["external_id"]),
            name=row["name"],
            last_kill_id=int(row["last_kill_id"]),
            last_loss_id=int(row["last_loss_id"]),
            kill_template=row["kill_template"],
            loss_template=row["loss_template"],
            excluded_locations=frozenset(excluded),
        )

    def load_all(self) -> list[TrackedEntity]:
        """Return every tracked entity with its exclusion list."""

        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT * FROM entities ORDER BY id").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load entities: {e}") from e
        return [self._row_to_entity(row, self.load_excluded_locations(int(row["id"]))) for row in rows]

    def find_by_external_id(self, external_id: int) -> Optional[TrackedEntity]:
        """Return the entity tracked under a feed id, if any."""

        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM entities WHERE external_id = ?",
                    (external_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to look up entity #{external_id}: {e}") from e
        if row is None:
            return None
        return self._row_to_entity(row, self.load_excluded_locations(int(row["id"])))

    def load_excluded_locations(self, entity_id: int) -> list[int]:
        """Return the excluded location ids for one entity."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT location_id FROM excluded_locations WHERE entity_id = ? ORDER BY location_id",
                    (entity_id,),
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load exclusions for entity {entity_id}: {e}") from e
        return [int(row["location_id"]) for row in rows]

    def save(self, entity: TrackedEntity) -> TrackedEntity:
        """Insert an unseen entity or update an existing one.

        Watermarks are written with MAX() so a stale in-memory copy can never
        move a stored watermark backwards.
        """

        try:
            with self._connect() as conn:
                if entity.id is None:
                    cur = conn.execute(
                        """
                        INSERT INTO entities (
                            external_id,
                            name,
                            last_kill_id,
                            last_loss_id,
                            kill_template,
                            loss_template
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (
                            entity.external_id,
                            entity.name,
                            entity.last_kill_id,
                            entity.last_loss_id,
                            entity.kill_template,
                            entity.loss_template,
                        ),
                    )
                    entity.id = int(cur.lastrowid)
                else:
                    conn.execute(
                        """
                        UPDATE entities SET
                            external_id = ?,
                            name = ?,
                            last_kill_id = MAX(last_kill_id, ?),
                            last_loss_id = MAX(last_loss_id, ?),
                            kill_template = ?,
                            loss_template = ?
                        WHERE id = ?
                        """,
                        (
                            entity.external_id,
                            entity.name,
                            entity.last_kill_id,
                            entity.last_loss_id,
                            entity.kill_template,
                            entity.loss_template,
                            entity.id,
                        ),
                    )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save entity #{entity.external_id}: {e}") from e
        return entity

    def replace_excluded_locations(self, entity_id: int, location_ids: Iterable[int]) -> None:
        """Overwrite the exclusion list of an entity."""

        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM excluded_locations WHERE entity_id = ?", (entity_id,))
                conn.executemany(
                    "INSERT OR IGNORE INTO excluded_locations (entity_id, location_id) VALUES (?, ?)",
                    [(entity_id, int(location_id)) for location_id in location_ids],
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to store exclusions for entity {entity_id}: {e}") from e
