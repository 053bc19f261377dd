"""
File-backed table store — the last saved routing table plus a short
history of previous saves.

Best effort: I/O and decode problems are logged and reported as
False / None / [], never raised. A broken store must not stop a trace
run from a CSV.
"""

from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional
import json
import logging

from .models import RouteRecord, RoutingTable

logger = logging.getLogger("routetrace.store")

DEFAULT_STORE_DIR = Path.home() / ".routetrace"
DATA_FILE = "routing_data.json"
HISTORY_FILE = "data_history.json"
STORE_VERSION = "1.0"
MAX_HISTORY_ITEMS = 10
PREVIEW_ITEMS = 3


class TableStore:
    def __init__(self, directory: str | Path = DEFAULT_STORE_DIR):
        self.directory = Path(directory)

    @property
    def path(self) -> Path:
        return self.directory / DATA_FILE

    @property
    def history_path(self) -> Path:
        return self.directory / HISTORY_FILE

    # ── Current table ──

    def save(self, records: Iterable[RouteRecord]) -> bool:
        data = [r.to_dict() for r in records]
        payload = {
            "data": data,
            "timestamp": datetime.now().isoformat(),
            "version": STORE_VERSION,
        }
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving routing table to {self.path}: {e}")
            return False

        self._add_to_history(payload)
        logger.info(f"Saved {len(data)} routes to {self.path}")
        return True

    def load(self) -> Optional[RoutingTable]:
        payload = self._read(self.path)
        if not isinstance(payload, dict) or not payload.get("data"):
            return None
        try:
            return RoutingTable(RouteRecord.from_dict(d) for d in payload["data"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Stored routing table is malformed: {e}")
            return None

    def metadata(self) -> Optional[dict]:
        payload = self._read(self.path)
        if not isinstance(payload, dict):
            return None
        return {
            "timestamp": payload.get("timestamp"),
            "version": payload.get("version"),
            "item_count": len(payload.get("data") or []),
        }

    def clear(self) -> bool:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error clearing {self.path}: {e}")
            return False
        return True

    # ── History ──

    def history(self) -> list[dict]:
        entries = self._read(self.history_path)
        return entries if isinstance(entries, list) else []

    def clear_history(self) -> bool:
        try:
            self.history_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error clearing {self.history_path}: {e}")
            return False
        return True

    def _add_to_history(self, payload: dict) -> None:
        entries = self.history()
        entries.insert(0, {
            "timestamp": payload["timestamp"],
            "item_count": len(payload["data"]),
            "preview": payload["data"][:PREVIEW_ITEMS],
        })
        try:
            self.history_path.write_text(
                json.dumps(entries[:MAX_HISTORY_ITEMS], indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            logger.error(f"Error writing history to {self.history_path}: {e}")

    # ── Size ──

    def size(self) -> dict:
        """Bytes on disk for the table and for the store as a whole."""
        data_bytes = self.path.stat().st_size if self.path.exists() else 0
        history_bytes = (self.history_path.stat().st_size
                         if self.history_path.exists() else 0)
        total = data_bytes + history_bytes
        return {
            "total_bytes": total,
            "total_kb": round(total / 1024, 2),
            "routing_data_bytes": data_bytes,
            "routing_data_kb": round(data_bytes / 1024, 2),
        }

    @staticmethod
    def _read(path: Path):
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading {path}: {e}")
            return None
