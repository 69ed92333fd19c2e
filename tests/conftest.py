"""
Shared fixtures and host doubles for apgeist tests.

Nothing here touches the real machine: commands are recorded, sysfs lives in
tmp_path, and every timeout is zero so poll loops check once and return.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from apgeist.config import Settings
from apgeist.errors import PackageInstallError
from apgeist.models.ap import APConfig
from apgeist.services.host import CommandResult, NetworkHost
from apgeist.services.orchestrator import ProvisioningOrchestrator
from apgeist.services.provision_store import ProvisionStore


# ============================================================================
# Command doubles
# ============================================================================

class FakeRunner:
    """Records argv lists; answers from a prefix -> CommandResult table."""

    def __init__(self, responses: Optional[Dict[tuple, CommandResult]] = None):
        self.responses = responses or {}
        self.calls: List[List[str]] = []

    def __call__(self, cmd: Sequence[str], **kwargs) -> CommandResult:
        cmd = list(cmd)
        self.calls.append(cmd)
        best = None
        for prefix, result in self.responses.items():
            if tuple(cmd[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best[0])):
                best = (prefix, result)
        return best[1] if best else CommandResult(0, "", "")


class FakeNetwork:
    def __init__(
        self,
        interfaces: Iterable[str] = ("wlX", "eth0", "lo"),
        info_ok: bool = True,
        phy_text: Optional[str] = "Supported interface modes:\n\t * managed\n\t * AP\n",
        default_route: Optional[str] = "eth0",
        addresses: Optional[Dict[str, List[str]]] = None,
        mode: Optional[str] = "AP",
        ssid: Optional[str] = None,
        link_up: bool = True,
        fail_on: Iterable[str] = (),
    ):
        self.interfaces = list(interfaces)
        self.info_ok = info_ok
        self.phy_text = phy_text
        self.default_route = default_route
        self.addresses = addresses if addresses is not None else {"wlX": ["192.168.4.1"]}
        self.mode = mode
        self.ssid = ssid
        self.link_up = link_up
        self.fail_on = list(fail_on)
        self.commands: List[List[str]] = []

    def _record(self, cmd: List[str]) -> CommandResult:
        self.commands.append(cmd)
        joined = " ".join(cmd)
        if any(f in joined for f in self.fail_on):
            return CommandResult(1, "", f"failed: {joined}")
        return CommandResult(0, "", "")

    def list_interfaces(self) -> List[str]:
        return list(self.interfaces)

    def is_wireless(self, iface: str) -> bool:
        return iface.startswith("wl")

    def interface_info(self, iface: str) -> Optional[str]:
        return f"Interface {iface}\n\twiphy 0\n" if self.info_ok else None

    def phy_name(self, iface: str) -> Optional[str]:
        return "phy0"

    def phy_info(self, phy: str) -> Optional[str]:
        return self.phy_text

    supports_ap_mode = staticmethod(NetworkHost.supports_ap_mode)

    def default_route_interface(self) -> Optional[str]:
        return self.default_route

    def ipv4_addresses(self, iface: str) -> List[str]:
        return self.addresses.get(iface, [])

    def is_link_up(self, iface: str) -> bool:
        return self.link_up

    def set_link(self, iface: str, up: bool) -> CommandResult:
        return self._record(["ip", "link", "set", iface, "up" if up else "down"])

    def assign_address(self, iface: str, cidr: str) -> List[CommandResult]:
        return [
            self._record(["ip", "addr", "flush", "dev", iface]),
            self._record(["ip", "addr", "add", cidr, "dev", iface]),
            self.set_link(iface, True),
        ]

    def interface_mode(self, iface: str) -> Optional[str]:
        return self.mode

    def interface_ssid(self, iface: str) -> Optional[str]:
        return self.ssid

    def driver_name(self, iface: str) -> Optional[str]:
        return "rtw89_8852be"

    def disconnect(self, iface: str) -> CommandResult:
        return self._record(["nmcli", "device", "disconnect", iface])

    def kill_process(self, name: str) -> CommandResult:
        return self._record(["pkill", name])

    def run(self, cmd: Sequence[str], **kwargs) -> CommandResult:
        return self._record(list(cmd))


class FakeSupervisor:
    def __init__(
        self,
        active: Iterable[str] = (),
        enabled: Iterable[str] = ("dhcpcd",),
        masked: Iterable[str] = (),
        fail_start: Iterable[str] = (),
        interrupt_start: Iterable[str] = (),
        stays_inactive: Iterable[str] = (),
    ):
        self.active = set(active)
        self.enabled = set(enabled)
        self.masked = set(masked)
        self.fail_start = set(fail_start)
        self.interrupt_start = set(interrupt_start)
        self.stays_inactive = set(stays_inactive)
        self.calls: List[tuple] = []

    def is_active(self, name: str) -> bool:
        return name in self.active

    def is_enabled(self, name: str) -> bool:
        return name in self.enabled

    def is_masked(self, name: str) -> bool:
        return name in self.masked

    def _ok(self, action: str, name: str) -> CommandResult:
        self.calls.append((action, name))
        return CommandResult(0, "", "")

    def unmask(self, name: str) -> CommandResult:
        self.masked.discard(name)
        return self._ok("unmask", name)

    def enable(self, name: str) -> CommandResult:
        self.enabled.add(name)
        return self._ok("enable", name)

    def disable(self, name: str) -> CommandResult:
        self.enabled.discard(name)
        return self._ok("disable", name)

    def start(self, name: str) -> CommandResult:
        return self._launch("start", name)

    def _launch(self, action: str, name: str) -> CommandResult:
        self.calls.append((action, name))
        if name in self.interrupt_start:
            raise KeyboardInterrupt()
        if name in self.fail_start:
            return CommandResult(1, "", f"Job for {name}.service failed")
        if name not in self.stays_inactive:
            self.active.add(name)
        return CommandResult(0, "", "")

    def stop(self, name: str) -> CommandResult:
        self.active.discard(name)
        return self._ok("stop", name)

    def restart(self, name: str) -> CommandResult:
        return self._launch("restart", name)

    def status_text(self, name: str) -> str:
        return f"{name}.service - status output"

    def log_tail(self, name: str, lines: int = 20) -> str:
        return f"{name} journal tail"


class FakePackages:
    def __init__(self, missing: Iterable[str] = (), fail_install: bool = False):
        self._missing = list(missing)
        self.fail_install = fail_install
        self.installed: List[str] = []

    def missing(self, packages: Sequence[str]) -> List[str]:
        return [p for p in packages if p in self._missing]

    def install(self, packages: Sequence[str]) -> None:
        if self.fail_install:
            raise PackageInstallError(f"apt-get install failed for {' '.join(packages)}")
        self.installed.extend(packages)


# ============================================================================
# Settings and config fixtures
# ============================================================================

@pytest.fixture
def etc_dir(tmp_path: Path) -> Path:
    d = tmp_path / "etc"
    (d / "hostapd").mkdir(parents=True)
    (d / "default").mkdir()
    (d / "iptables").mkdir()
    return d


@pytest.fixture
def test_settings(tmp_path: Path, etc_dir: Path) -> Settings:
    proc = tmp_path / "proc"
    proc.mkdir()
    return Settings(
        hostapd_conf=str(etc_dir / "hostapd" / "hostapd.conf"),
        hostapd_default=str(etc_dir / "default" / "hostapd"),
        dnsmasq_conf=str(etc_dir / "dnsmasq.conf"),
        dhcpcd_conf=str(etc_dir / "dhcpcd.conf"),
        sysctl_conf=str(etc_dir / "sysctl.conf"),
        ip_forward_path=str(proc / "ip_forward"),
        iptables_rules_v4=str(etc_dir / "iptables" / "rules.v4"),
        iptables_rules_v6=str(etc_dir / "iptables" / "rules.v6"),
        sys_class_net=str(tmp_path / "sys_class_net"),
        app_data_dir=str(tmp_path / "data"),
        service_start_timeout=0.0,
        link_up_timeout=0.0,
        address_timeout=0.0,
        ap_mode_timeout=0.0,
        poll_interval=0.0,
    )


@pytest.fixture
def ap_config() -> APConfig:
    return APConfig(
        ssid="RadxaAP",
        passphrase="radxa123456",
        ap_ip="192.168.4.1",
        dhcp_start="192.168.4.2",
        dhcp_end="192.168.4.20",
        channel=7,
        country_code="PK",
    )


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def make_orchestrator(test_settings: Settings):
    def _make(network=None, supervisor=None, packages=None, which=None, is_root=True, settings=None):
        cfg = settings or test_settings
        return ProvisioningOrchestrator(
            cfg,
            network=network or FakeNetwork(),
            supervisor=supervisor or FakeSupervisor(),
            packages=packages or FakePackages(),
            store=ProvisionStore(cfg),
            which=which or (lambda name: None),
            is_root=lambda: is_root,
            sleep=lambda s: None,
        )

    return _make
