from __future__ import annotations

import fcntl
import json
import os
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

from ..config import Settings, settings as default_settings
from ..errors import ProvisioningLocked
from ..models.ap import ProvisionReport
from ..utils.paths import get_app_data_dir


LOCK_FILE = "provision.lock"
REPORT_FILE = "last_report.json"


class ProvisionLock:
    """Non-blocking flock held for the duration of one provisioning run."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._fd: Optional[int] = None

    def acquire(self) -> None:
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as exc:
            os.close(fd)
            raise ProvisioningLocked(f"another provisioning run holds {self._path}") from exc
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None


def report_to_dict(report: ProvisionReport) -> Dict[str, Any]:
    def _default(o: Any) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if hasattr(o, "value"):
            return o.value
        raise TypeError(type(o).__name__)

    return json.loads(json.dumps(asdict(report), default=_default))


class ProvisionStore:
    def __init__(self, cfg: Optional[Settings] = None) -> None:
        self._dir = get_app_data_dir(cfg)
        os.makedirs(self._dir, exist_ok=True)
        self._file = os.path.join(self._dir, REPORT_FILE)

    def lock(self) -> ProvisionLock:
        return ProvisionLock(os.path.join(self._dir, LOCK_FILE))

    def load(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self._file):
            return None
        try:
            with open(self._file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError):
            return None

    def save(self, report: ProvisionReport) -> None:
        tmp = self._file + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(report_to_dict(report), f, indent=2)
        os.replace(tmp, self._file)
        os.chmod(self._file, 0o600)
