import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Maintain per-game filename base so all writes go to the same timestamped file
_GAME_FILE_BASE: Dict[str, str] = {}

_DEFAULT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "logs", "sessions"))


def _audit_dir() -> Optional[str]:
    """SUBHUNT_AUDIT_DIR overrides the directory; an empty value disables auditing."""
    path = os.getenv("SUBHUNT_AUDIT_DIR")
    if path is None:
        return _DEFAULT_DIR
    return path or None


def _file_base_for(game_id: str) -> str:
    """Return a stable '<timestamp>_<game_id>' base for this process."""
    if game_id in _GAME_FILE_BASE:
        return _GAME_FILE_BASE[game_id]
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    base = f"{ts}_{game_id}"
    _GAME_FILE_BASE[game_id] = base
    return base


def audit_write(game_id: Optional[str], record: Dict[str, Any]) -> None:
    """Append a structured JSON line to the per-game audit log.

    The file is stored under <audit dir>/<timestamp>_<game_id>.log.
    """
    base_dir = _audit_dir()
    if not game_id or base_dir is None:
        return
    record = dict(record)
    record.setdefault("ts", datetime.now(timezone.utc).isoformat())
    record.setdefault("game_id", game_id)
    log_path = os.path.join(base_dir, f"{_file_base_for(game_id)}.log")
    try:
        os.makedirs(base_dir, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
    except OSError:
        # Never raise from audit logging; it's best-effort.
        pass


def forget(game_id: str) -> None:
    _GAME_FILE_BASE.pop(game_id, None)
