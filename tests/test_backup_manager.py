"""
Tests for apgeist.services.backup_manager.
"""

from datetime import datetime
from pathlib import Path

from apgeist.services.backup_manager import BackupManager


def fixed_clock():
    return datetime(2026, 10, 19, 8, 30, 0)


class TestBackupManager:
    def test_snapshot_existing(self, tmp_path):
        target = tmp_path / "dnsmasq.conf"
        target.write_text("original")
        record = BackupManager(clock=fixed_clock).snapshot(str(target))
        assert record is not None
        assert record.backup_path == str(target) + ".backup.20261019_083000"
        assert Path(record.backup_path).read_text() == "original"
        assert record.created_at == fixed_clock()

    def test_snapshot_absent_is_noop(self, tmp_path):
        mgr = BackupManager(clock=fixed_clock)
        assert mgr.snapshot(str(tmp_path / "missing.conf")) is None
        assert mgr.records == []
        assert list(tmp_path.iterdir()) == []

    def test_snapshot_once_per_run(self, tmp_path):
        target = tmp_path / "hostapd.conf"
        target.write_text("v1")
        mgr = BackupManager(clock=fixed_clock)
        first = mgr.snapshot(str(target))
        target.write_text("v2")
        assert mgr.snapshot(str(target)) is first
        assert Path(first.backup_path).read_text() == "v1"

    def test_name_collision(self, tmp_path):
        target = tmp_path / "dhcpcd.conf"
        target.write_text("x")
        Path(str(target) + ".backup.20261019_083000").write_text("older")
        record = BackupManager(clock=fixed_clock).snapshot(str(target))
        assert record.backup_path.endswith(".backup.20261019_083000.1")

    def test_rollback(self, tmp_path):
        existing = tmp_path / "dnsmasq.conf"
        existing.write_text("distro")
        created = tmp_path / "hostapd.conf"
        mgr = BackupManager(clock=fixed_clock)
        mgr.snapshot_all([str(existing), str(created)])
        existing.write_text("ours")
        created.write_text("ours")

        restored = mgr.rollback()

        assert existing.read_text() == "distro"
        assert not created.exists()
        assert set(restored) == {str(existing), str(created)}

    def test_backup_failure_recorded(self, tmp_path, monkeypatch):
        target = tmp_path / "hostapd.conf"
        target.write_text("x")

        def broken_copy(*args, **kwargs):
            raise PermissionError("read-only filesystem")

        monkeypatch.setattr("apgeist.services.backup_manager.shutil.copy2", broken_copy)
        mgr = BackupManager(clock=fixed_clock)
        assert mgr.snapshot(str(target)) is None
        assert mgr.records == []
        assert "hostapd.conf" in mgr.failures[0]
