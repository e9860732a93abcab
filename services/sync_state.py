from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from core.settings import SYNC
from datetime_utils import ensure_utc, parse_rfc3339, to_iso, utc_now


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return ensure_utc(parse_rfc3339(value)) if value else None


class SyncStateStorage:
    """JSON file holding the client's sync anchors."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path or SYNC.state_path)

    # ------------------------------------------------------------------
    # generic helpers
    def _load(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            return {}
        if isinstance(data, dict):
            return data
        return {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self.path)

    # ------------------------------------------------------------------
    # High-water mark: server time up to which changes were received
    def get_last_sync_timestamp(self) -> Optional[datetime]:
        return _parse_datetime(self._load().get("lastServerTimestamp"))

    def set_last_sync_timestamp(self, value: datetime) -> None:
        data = self._load()
        data["lastServerTimestamp"] = to_iso(value)
        self._save(data)

    # ------------------------------------------------------------------
    def set_last_attempt(self, *, success: bool, moment: Optional[datetime] = None) -> None:
        data = self._load()
        data["lastAttemptAt"] = to_iso(moment or utc_now())
        data["lastAttemptOk"] = bool(success)
        self._save(data)

    def get_last_attempt(self) -> tuple[Optional[datetime], Optional[bool]]:
        data = self._load()
        return _parse_datetime(data.get("lastAttemptAt")), data.get("lastAttemptOk")


__all__ = ["SyncStateStorage"]
