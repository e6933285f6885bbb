"""Local persistence: cached hierarchy snapshot, parameter sheets and selection.

Architecture:
- **SQLite** (``snapshots.db``) for the last fetched payload and the
  per-workstation parameter sheets.
- **JSON state file** (``state.json``) for the selected node id.

The platform API stays the source of truth; this cache only lets CLI
commands work without refetching on every invocation.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from . import config
from .attributes import ParameterSheet, sample_sheet
from .factory_service import HierarchyPayload

logger = logging.getLogger(__name__)


# ===================================================================
# StateManager  (selected node)
# ===================================================================

class StateManager:
    """Persist the selected node id between CLI invocations."""

    def __init__(self, state_file: Optional[Path] = None) -> None:
        self.state_file = state_file or config.STATE_FILE

    def _read(self) -> Dict[str, Any]:
        if not self.state_file.exists():
            return {}
        try:
            return json.loads(self.state_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt state file %s", self.state_file)
            return {}

    def _write(self, payload: Dict[str, Any]) -> None:
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self.state_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def set_selected(self, node_id: Optional[str]) -> None:
        state = self._read()
        state["selected_node"] = node_id
        self._write(state)

    def get_selected(self, known_ids: Optional[Iterable[str]] = None) -> Optional[str]:
        """Selected id, or ``None`` when it is no longer part of ``known_ids``."""
        selected = self._read().get("selected_node")
        if selected is None or known_ids is None:
            return selected
        if selected not in set(known_ids):
            logger.info("Selected node %s no longer exists; clearing selection", selected)
            self.set_selected(None)
            return None
        return selected

    def clear(self) -> None:
        self.set_selected(None)


# ===================================================================
# SnapshotStore  (SQLite)
# ===================================================================

class SnapshotStore:
    """SQLite cache for the last hierarchy payload and parameter sheets."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = db_path or config.SNAPSHOT_DB
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "SnapshotStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute("""
            CREATE TABLE IF NOT EXISTS snapshots (
                generation INTEGER PRIMARY KEY AUTOINCREMENT,
                source     TEXT NOT NULL,
                fetched_at TEXT NOT NULL,
                nodes      TEXT NOT NULL,
                links      TEXT NOT NULL
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS parameter_sheets (
                node_id    TEXT PRIMARY KEY,
                rows       TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self.conn.commit()

    # ------------------------------------------------------------------
    # Hierarchy payloads
    # ------------------------------------------------------------------

    def save_payload(self, payload: HierarchyPayload) -> int:
        """Store ``payload`` and return its generation number."""
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO snapshots (source, fetched_at, nodes, links) VALUES (?, ?, ?, ?)",
            (
                payload.source,
                datetime.now(timezone.utc).isoformat(),
                json.dumps(payload.nodes),
                json.dumps(payload.links),
            ),
        )
        generation = int(cur.lastrowid)
        # Only the latest payload is ever read back
        cur.execute("DELETE FROM snapshots WHERE generation < ?", (generation,))
        self.conn.commit()
        logger.debug("Cached %d nodes as generation %d", len(payload.nodes), generation)
        return generation

    def latest(self) -> Optional[Dict[str, Any]]:
        """Most recent payload as ``{generation, source, fetched_at, payload}``."""
        row = self.conn.execute(
            "SELECT * FROM snapshots ORDER BY generation DESC LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        return {
            "generation": row["generation"],
            "source": row["source"],
            "fetched_at": row["fetched_at"],
            "payload": HierarchyPayload(
                nodes=json.loads(row["nodes"]),
                links=json.loads(row["links"]),
                source=row["source"],
            ),
        }

    def clear(self) -> None:
        self.conn.execute("DELETE FROM snapshots")
        self.conn.commit()

    # ------------------------------------------------------------------
    # Parameter sheets
    # ------------------------------------------------------------------

    def load_sheet(self, node_id: str) -> ParameterSheet:
        """Stored sheet for ``node_id``, or the sample sheet when none exists."""
        row = self.conn.execute(
            "SELECT rows FROM parameter_sheets WHERE node_id = ?", (node_id,)
        ).fetchone()
        if row is None:
            return sample_sheet(node_id)
        return ParameterSheet.from_list(node_id, json.loads(row["rows"]))

    def save_sheet(self, sheet: ParameterSheet) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO parameter_sheets (node_id, rows, updated_at) VALUES (?, ?, ?)",
            (sheet.node_id, json.dumps(sheet.to_list()), datetime.now(timezone.utc).isoformat()),
        )
        self.conn.commit()

    def has_sheet(self, node_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM parameter_sheets WHERE node_id = ?", (node_id,)
        ).fetchone()
        return row is not None
