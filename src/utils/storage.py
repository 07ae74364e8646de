# key/value local storage persisted as a single json file
import json
import os
import tempfile
from typing import Dict, Optional

from utils.logger import get_logger

_logger = get_logger(__name__)


class LocalStorage:
    """
    Minimal string key/value store that survives restarts.

    Values are opaque strings; callers encode their own snapshots as JSON.
    A missing or corrupt backing file reads as empty.
    """

    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            _logger.warning(f"Local storage at {self.path} is unreadable ({e}), ignoring it.")
            return {}
        if not isinstance(data, dict):
            _logger.warning(f"Local storage at {self.path} is not a mapping, ignoring it.")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        # write then rename, so a crash never leaves a half-written file
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)
