import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Checked in order; the first value longer than TOKEN_MIN_LENGTH wins
TOKEN_KEYS = ["token", "authToken", "access_token", "accessToken", "auth_token", "jwt"]
TOKEN_MIN_LENGTH = 10


def fallback_key(device_id: str) -> str:
    return f"greenhouse_{device_id}"


class LocalStore:
    """
    String key/value store kept in a single JSON file.

    Without a path the store lives in memory only. Reads never raise: a
    missing or corrupt file is logged and treated as empty.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._items: Dict[str, str] = {}
        self._load()

    def _load(self):
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                self._items = {str(k): str(v) for k, v in data.items()}
            else:
                logger.error(f"Local store {self.path} does not hold an object, ignoring it")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read local store {self.path}: {e}")

    def _flush(self):
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._items, f, ensure_ascii=False)
        tmp_path.replace(self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str):
        self._items[key] = value
        self._flush()

    def remove_item(self, key: str):
        if self._items.pop(key, None) is not None:
            self._flush()

    def keys(self):
        return list(self._items.keys())

    def get_json(self, key: str) -> Optional[Any]:
        raw = self.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Local store entry {key} is not valid JSON: {e}")
            return None

    def set_json(self, key: str, value: Any):
        self.set_item(key, json.dumps(value, ensure_ascii=False))


def find_auth_token(store: LocalStore, keys: Optional[List[str]] = None) -> Optional[str]:
    for key in keys or TOKEN_KEYS:
        value = store.get_item(key)
        if value and len(value) > TOKEN_MIN_LENGTH:
            return value
    return None
