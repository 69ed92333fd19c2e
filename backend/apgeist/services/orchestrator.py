from __future__ import annotations

import logging
import os
import shutil
import time
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..config import Settings, settings as default_settings
from ..errors import (
    InterfaceUnusable,
    PackageInstallError,
    PrivilegeError,
    ProvisioningCancelled,
    ProvisioningError,
    ProvisioningLocked,
    ServiceStartError,
)
from ..models.ap import APConfig, ProvisionReport, StageResult, StageStatus
from ..utils.polling import wait_until
from .backup_manager import BackupManager
from .config_synth import ConfigSynthesizer
from .host import NetworkHost, PackageManager, ServiceSupervisor
from .interface_detector import InterfaceDetector
from .nat_manager import NATManager
from .provision_store import ProvisionStore
from .service_controller import AP_DAEMON, DHCP_DAEMON, ServiceController
from .troubleshooting import render_summary, render_troubleshooting


logger = logging.getLogger(__name__)

Stage = Tuple[str, Callable[[], List[str]]]


def _is_root() -> bool:
    return os.geteuid() == 0


class ProvisioningOrchestrator:
    """Runs the access point pipeline once, stage by stage.

    Each stage returns its warnings or raises a ``ProvisioningError``. The first
    fatal error (or an interrupt) stops the pipeline, restores backed-up config
    files when ``rollback_on_failure`` is set, and attaches a troubleshooting
    report. Kernel state already changed (firewall, forwarding, addresses) is
    left in place.
    """

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        network: Optional[NetworkHost] = None,
        supervisor: Optional[ServiceSupervisor] = None,
        packages: Optional[PackageManager] = None,
        store: Optional[ProvisionStore] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
        is_root: Callable[[], bool] = _is_root,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = cfg or default_settings
        self._net = network or NetworkHost(sys_class_net=self._settings.sys_class_net)
        self._svc = supervisor or ServiceSupervisor()
        self._pkgs = packages or PackageManager()
        self._store = store or ProvisionStore(self._settings)
        self._which = which
        self._is_root = is_root
        self._sleep = sleep

    def run(self, ap: APConfig) -> ProvisionReport:
        report = ProvisionReport(success=False)
        if not self._is_root():
            err = PrivilegeError("provisioning must run as root (use sudo)")
            logger.error("[orchestrator] %s", err)
            report.stages.append(StageResult("privilege", StageStatus.FAILED, str(err)))
            report.error = str(err)
            report.finished_at = datetime.now()
            return report

        lock = self._store.lock()
        try:
            lock.acquire()
        except ProvisioningLocked as exc:
            logger.error("[orchestrator] %s", exc)
            report.stages.append(StageResult("lock", StageStatus.FAILED, str(exc)))
            report.error = str(exc)
            report.finished_at = datetime.now()
            return report
        try:
            report.stages.append(StageResult("privilege", StageStatus.OK))
            self._execute(ap, report)
        finally:
            lock.release()
        try:
            self._store.save(report)
        except OSError as exc:
            logger.warning("[orchestrator] could not persist report: %s", exc)
        return report

    def _execute(self, ap: APConfig, report: ProvisionReport) -> None:
        self._ap = ap
        self._report = report
        self._backups = BackupManager()
        self._detector = InterfaceDetector(self._net)
        self._synth = ConfigSynthesizer(self._settings, self._backups)
        self._nat = NATManager(self._settings, self._net, self._which)
        self._services = ServiceController(self._settings, self._svc, self._net, self._sleep)

        stages = self._stages()
        failure: Optional[BaseException] = None
        for idx, (name, stage) in enumerate(stages):
            logger.info("[orchestrator] stage %s", name)
            try:
                warnings = stage() or []
            except ProvisioningError as exc:
                failure = exc
                report.stages.append(StageResult(name, StageStatus.FAILED, str(exc)))
            except KeyboardInterrupt:
                failure = ProvisioningCancelled(f"interrupted during {name}")
                report.stages.append(StageResult(name, StageStatus.CANCELLED, str(failure)))
            else:
                status = StageStatus.WARNING if warnings else StageStatus.OK
                report.stages.append(StageResult(name, status, warnings=list(warnings)))
                report.warnings.extend(warnings)
                continue
            report.stages += [StageResult(n, StageStatus.SKIPPED) for n, _ in stages[idx + 1:]]
            break

        report.interface = self._ap.interface
        report.backups = self._backups.records
        report.finished_at = datetime.now()
        if failure is None:
            report.success = True
            logger.info("[orchestrator] access point setup completed\n%s", render_summary(self._ap))
        else:
            report.error = str(failure)
            if isinstance(failure, ServiceStartError):
                report.diagnostics = failure.diagnostics
            logger.error("[orchestrator] setup failed: %s", failure)
            if self._settings.rollback_on_failure:
                report.rolled_back = self._backups.rollback()
        report.troubleshooting = render_troubleshooting(
            self._ap,
            upstream=report.upstream_interface,
            driver=self._net.driver_name(self._ap.interface) if self._ap.interface else None,
            diagnostics=report.diagnostics,
            rolled_back=bool(report.rolled_back),
        )

    def _stages(self) -> List[Stage]:
        stages: List[Stage] = [
            ("detect_interface", self._detect_interface),
            ("packages", self._ensure_packages),
            ("backup", self._backup),
            ("disconnect", self._disconnect),
            ("hostapd_config", self._configure_hostapd),
            ("dnsmasq_config", self._configure_dnsmasq),
            ("static_ip", self._configure_static_ip),
            ("nat", self._configure_nat),
            ("start_services", self._start_services),
            ("verify", self._verify),
        ]
        if self._settings.start_speed_test:
            stages.append(("speed_test", self._speed_test))
        return stages

    def _detect_interface(self) -> List[str]:
        name = self._detector.detect()
        try:
            self._ap = self._ap.with_interface(name)
        except ValueError as exc:
            raise InterfaceUnusable(f"interface name {name!r} cannot be used in daemon configs") from exc
        return self._detector.warnings

    def _ensure_packages(self) -> List[str]:
        missing = self._pkgs.missing(self._settings.required_packages)
        if not missing:
            logger.info("[orchestrator] all required packages already installed")
            return []
        if not self._settings.install_missing_packages:
            raise PackageInstallError(f"missing packages: {' '.join(missing)}")
        self._pkgs.install(missing)
        return []

    def _backup(self) -> List[str]:
        self._backups.snapshot_all(self._settings.managed_paths())
        return list(self._backups.failures)

    def _disconnect(self) -> List[str]:
        iface = self._ap.interface
        warnings: List[str] = []
        if self._svc.is_active("NetworkManager"):
            logger.info("[orchestrator] stopping NetworkManager")
            self._svc.stop("NetworkManager")
            self._svc.disable("NetworkManager")
        if self._svc.is_active("wpa_supplicant"):
            logger.info("[orchestrator] stopping wpa_supplicant")
            self._svc.stop("wpa_supplicant")
        # pkill exits 1 when nothing matched
        self._net.kill_process("wpa_supplicant")
        if self._which("nmcli"):
            self._net.disconnect(iface)

        for up in (False, True):
            res = self._net.set_link(iface, up)
            if not res.ok:
                raise InterfaceUnusable(f"could not bring {iface} {'up' if up else 'down'}: {res.output}")
        if not wait_until(
            lambda: self._net.is_link_up(iface),
            self._settings.link_up_timeout,
            interval=self._settings.poll_interval,
            sleep=self._sleep,
        ):
            warnings.append(f"{iface} did not report link up within {self._settings.link_up_timeout}s")
            logger.warning("[orchestrator] %s", warnings[-1])
        return warnings

    def _configure_hostapd(self) -> List[str]:
        self._synth.write_hostapd(self._ap)
        self._services.mark_configured(AP_DAEMON)
        return []

    def _configure_dnsmasq(self) -> List[str]:
        self._synth.write_dnsmasq(self._ap)
        self._services.mark_configured(DHCP_DAEMON)
        return []

    def _configure_static_ip(self) -> List[str]:
        self._synth.write_static_ip(self._ap)
        if self._svc.is_enabled("dhcpcd"):
            return []
        msg = "dhcpcd not available, configuring address with ip"
        logger.warning("[orchestrator] %s", msg)
        for res in self._net.assign_address(self._ap.interface, self._ap.ap_cidr):
            if not res.ok:
                raise InterfaceUnusable(f"could not assign {self._ap.ap_cidr} to {self._ap.interface}: {res.output}")
        return [msg]

    def _configure_nat(self) -> List[str]:
        rule = self._nat.enable_forwarding(self._ap.interface)
        self._report.upstream_interface = rule.upstream_interface
        return self._nat.warnings

    def _start_services(self) -> List[str]:
        self._services.refresh_addressing()
        self._services.start_all()
        return list(self._services.warnings)

    def _verify(self) -> List[str]:
        before = len(self._services.warnings)
        self._services.verify(self._ap.interface, self._ap.ap_ip, self._ap.ssid)
        return self._services.warnings[before:]

    def _speed_test(self) -> List[str]:
        if not self._which("iperf3"):
            msg = "iperf3 not installed; install with: apt install iperf3"
            logger.warning("[orchestrator] %s", msg)
            return [msg]
        res = self._net.run(["iperf3", "-s", "-D"])
        if not res.ok:
            return [f"iperf3 server failed to start: {res.output}"]
        logger.info("[orchestrator] iperf3 server on port 5201; run: iperf3 -c %s", self._ap.ap_ip)
        return []
