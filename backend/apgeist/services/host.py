"""Thin wrappers over the host tools the provisioning stages drive.

Everything here shells out (``ip``, ``iw``, ``systemctl``, ``apt-get``...) or
reads sysfs; nothing holds state. Each class takes a ``runner`` so tests can
record argv lists instead of touching the machine.
"""
from __future__ import annotations

import logging
import os
import socket
import subprocess
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import psutil

from ..errors import PackageInstallError


logger = logging.getLogger(__name__)

WIRELESS_SYS_PATH = "{root}/{iface}/wireless"
PHY_SYS_PATH = "{root}/{iface}/phy80211"


@dataclass
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return ((self.stdout or "") + (self.stderr or "")).strip()


Runner = Callable[..., CommandResult]


def run_command(cmd: Sequence[str], timeout: float = 60.0, input_text: Optional[str] = None) -> CommandResult:
    logger.debug("run: %s", " ".join(cmd))
    try:
        p = subprocess.run(list(cmd), capture_output=True, text=True, input=input_text, timeout=timeout, check=False)
    except FileNotFoundError as exc:
        return CommandResult(127, "", str(exc))
    except subprocess.TimeoutExpired as exc:
        out = exc.stdout if isinstance(exc.stdout, str) else ""
        return CommandResult(124, out, f"timed out after {timeout}s")
    return CommandResult(p.returncode, p.stdout or "", p.stderr or "")


class PackageManager:
    def __init__(self, runner: Runner = run_command) -> None:
        self._run = runner

    def is_installed(self, package: str) -> bool:
        res = self._run(["dpkg-query", "-W", "-f=${Status}", package])
        return res.ok and "install ok installed" in res.stdout

    def missing(self, packages: Sequence[str]) -> List[str]:
        return [p for p in packages if not self.is_installed(p)]

    def install(self, packages: Sequence[str]) -> None:
        if not packages:
            return
        logger.info("[packages] installing: %s", " ".join(packages))
        update = self._run(["apt-get", "update"], timeout=600.0)
        if not update.ok:
            logger.warning("[packages] apt-get update failed: %s", update.output)
        res = self._run(
            ["apt-get", "install", "-y", *packages],
            timeout=1800.0,
        )
        if not res.ok:
            raise PackageInstallError(f"apt-get install failed for {' '.join(packages)}: {res.output}")


class ServiceSupervisor:
    def __init__(self, runner: Runner = run_command) -> None:
        self._run = runner

    def is_active(self, name: str) -> bool:
        return self._run(["systemctl", "is-active", "--quiet", name]).ok

    def is_enabled(self, name: str) -> bool:
        return self._run(["systemctl", "is-enabled", "--quiet", name]).ok

    def is_masked(self, name: str) -> bool:
        res = self._run(["systemctl", "is-enabled", name])
        return res.stdout.strip() == "masked"

    def unmask(self, name: str) -> CommandResult:
        return self._run(["systemctl", "unmask", name])

    def enable(self, name: str) -> CommandResult:
        return self._run(["systemctl", "enable", name])

    def disable(self, name: str) -> CommandResult:
        return self._run(["systemctl", "disable", name])

    def start(self, name: str) -> CommandResult:
        return self._run(["systemctl", "start", name])

    def stop(self, name: str) -> CommandResult:
        return self._run(["systemctl", "stop", name])

    def restart(self, name: str) -> CommandResult:
        return self._run(["systemctl", "restart", name])

    def status_text(self, name: str) -> str:
        return self._run(["systemctl", "status", name, "--no-pager", "-l"]).output

    def log_tail(self, name: str, lines: int = 20) -> str:
        return self._run(["journalctl", "-u", name, "--no-pager", "-n", str(lines)]).output


class NetworkHost:
    def __init__(self, runner: Runner = run_command, sys_class_net: str = "/sys/class/net") -> None:
        self._run = runner
        self._root = sys_class_net

    def list_interfaces(self) -> List[str]:
        """Raw sysfs listing, in whatever order the filesystem returns."""
        try:
            return os.listdir(self._root)
        except OSError:
            return []

    def is_wireless(self, iface: str) -> bool:
        return os.path.exists(WIRELESS_SYS_PATH.format(root=self._root, iface=iface)) or os.path.exists(
            PHY_SYS_PATH.format(root=self._root, iface=iface)
        )

    def interface_info(self, iface: str) -> Optional[str]:
        res = self._run(["iw", "dev", iface, "info"])
        return res.stdout if res.ok else None

    def phy_name(self, iface: str) -> Optional[str]:
        try:
            with open(os.path.join(PHY_SYS_PATH.format(root=self._root, iface=iface), "name"), "r", encoding="utf-8") as f:
                return f.read().strip() or None
        except OSError:
            pass
        info = self.interface_info(iface) or ""
        for line in info.splitlines():
            parts = line.split()
            if len(parts) == 2 and parts[0] == "wiphy":
                return f"phy{parts[1]}"
        return None

    def phy_info(self, phy: str) -> Optional[str]:
        res = self._run(["iw", "phy", phy, "info"])
        return res.stdout if res.ok else None

    @staticmethod
    def supports_ap_mode(phy_info: str) -> Optional[bool]:
        """Parse the "Supported interface modes" block of ``iw phy info``.

        Returns None when the block is missing, since some drivers leave it out.
        """
        in_modes = False
        seen_block = False
        for raw in phy_info.splitlines():
            line = raw.strip()
            if line.startswith("Supported interface modes"):
                in_modes = True
                seen_block = True
                continue
            if in_modes:
                if not line.startswith("*"):
                    in_modes = False
                    continue
                if line.lstrip("* ").strip() == "AP":
                    return True
        return False if seen_block else None

    def default_route_interface(self) -> Optional[str]:
        res = self._run(["ip", "route", "show", "default"])
        for line in res.stdout.splitlines():
            parts = line.split()
            if "dev" in parts:
                idx = parts.index("dev")
                if idx + 1 < len(parts):
                    return parts[idx + 1]
        return None

    def ipv4_addresses(self, iface: str) -> List[str]:
        addrs = psutil.net_if_addrs().get(iface, [])
        return [a.address for a in addrs if a.family == socket.AF_INET]

    def is_link_up(self, iface: str) -> bool:
        stats = psutil.net_if_stats().get(iface)
        return bool(stats and stats.isup)

    def set_link(self, iface: str, up: bool) -> CommandResult:
        return self._run(["ip", "link", "set", iface, "up" if up else "down"])

    def assign_address(self, iface: str, cidr: str) -> List[CommandResult]:
        return [
            self._run(["ip", "addr", "flush", "dev", iface]),
            self._run(["ip", "addr", "add", cidr, "dev", iface]),
            self.set_link(iface, True),
        ]

    def interface_mode(self, iface: str) -> Optional[str]:
        for line in (self.interface_info(iface) or "").splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] == "type":
                return " ".join(parts[1:])
        return None

    def interface_ssid(self, iface: str) -> Optional[str]:
        for line in (self.interface_info(iface) or "").splitlines():
            stripped = line.strip()
            if stripped.startswith("ssid "):
                return stripped[len("ssid "):]
        return None

    def driver_name(self, iface: str) -> Optional[str]:
        link = os.path.join(self._root, iface, "device", "driver")
        try:
            return os.path.basename(os.readlink(link))
        except OSError:
            return None

    def disconnect(self, iface: str) -> CommandResult:
        return self._run(["nmcli", "device", "disconnect", iface])

    def kill_process(self, name: str) -> CommandResult:
        return self._run(["pkill", name])

    def run(self, cmd: Sequence[str], **kwargs) -> CommandResult:
        return self._run(list(cmd), **kwargs)
