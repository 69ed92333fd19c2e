from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..models.ap import BackupRecord


logger = logging.getLogger(__name__)

BACKUP_SUFFIX_FMT = ".backup.%Y%m%d_%H%M%S"


class BackupManager:
    """Snapshots config files before they are overwritten and restores them on rollback.

    Snapshots are taken at most once per path per run, so a file backed up in the
    backup stage is not backed up again (over its own rewrite) by synthesis.
    Files that did not exist before the run are tracked so rollback can remove them.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._records: Dict[str, BackupRecord] = {}
        self._created: List[str] = []
        self._seen: set[str] = set()
        self.failures: List[str] = []

    @property
    def records(self) -> List[BackupRecord]:
        return list(self._records.values())

    def snapshot(self, path: str) -> Optional[BackupRecord]:
        path = os.path.abspath(path)
        if path in self._seen:
            return self._records.get(path)
        self._seen.add(path)
        if not os.path.exists(path):
            self._created.append(path)
            return None
        now = self._clock()
        backup_path = path + now.strftime(BACKUP_SUFFIX_FMT)
        n = 1
        while os.path.exists(backup_path):
            backup_path = f"{path}{now.strftime(BACKUP_SUFFIX_FMT)}.{n}"
            n += 1
        try:
            shutil.copy2(path, backup_path)
        except OSError as exc:
            msg = f"backup of {path} failed: {exc}"
            logger.warning("[backup] %s", msg)
            self.failures.append(msg)
            return None
        record = BackupRecord(original_path=path, backup_path=backup_path, created_at=now)
        self._records[path] = record
        logger.info("[backup] %s -> %s", path, backup_path)
        return record

    def snapshot_all(self, paths: List[str]) -> List[BackupRecord]:
        out: List[BackupRecord] = []
        for p in paths:
            rec = self.snapshot(p)
            if rec:
                out.append(rec)
        return out

    def rollback(self) -> List[str]:
        """Put every snapshotted file back and drop files this run created."""
        restored: List[str] = []
        for record in self._records.values():
            try:
                shutil.copy2(record.backup_path, record.original_path)
                restored.append(record.original_path)
                logger.info("[backup] restored %s", record.original_path)
            except OSError as exc:
                logger.error("[backup] restore of %s failed: %s", record.original_path, exc)
        for path in self._created:
            if os.path.exists(path):
                try:
                    os.remove(path)
                    restored.append(path)
                    logger.info("[backup] removed %s (did not exist before)", path)
                except OSError as exc:
                    logger.error("[backup] removing %s failed: %s", path, exc)
        return restored
