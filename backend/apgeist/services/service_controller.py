from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional

from ..config import Settings, settings as default_settings
from ..errors import ServiceStartError, VerificationError, VerificationWarning
from ..models.ap import ServiceState
from ..utils.polling import wait_until
from .host import NetworkHost, ServiceSupervisor


logger = logging.getLogger(__name__)

AP_DAEMON = "hostapd"
DHCP_DAEMON = "dnsmasq"
MANAGED_DAEMONS = (AP_DAEMON, DHCP_DAEMON)

# The DHCP server needs the radio already associated-capable on the interface
START_PREREQUISITES = {DHCP_DAEMON: AP_DAEMON}

TRANSITIONS = {
    ServiceState.UNCONFIGURED: {ServiceState.CONFIGURED},
    ServiceState.CONFIGURED: {ServiceState.STARTING, ServiceState.CONFIGURED},
    ServiceState.STARTING: {ServiceState.RUNNING, ServiceState.FAILED},
    ServiceState.RUNNING: {ServiceState.VERIFIED, ServiceState.FAILED},
    ServiceState.VERIFIED: set(),
    ServiceState.FAILED: set(),
}


class ServiceController:
    def __init__(
        self,
        cfg: Optional[Settings] = None,
        supervisor: Optional[ServiceSupervisor] = None,
        network: Optional[NetworkHost] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = cfg or default_settings
        self._svc = supervisor or ServiceSupervisor()
        self._net = network or NetworkHost(sys_class_net=self._settings.sys_class_net)
        self._sleep = sleep
        self._states: Dict[str, ServiceState] = {d: ServiceState.UNCONFIGURED for d in MANAGED_DAEMONS}
        self.warnings: List[str] = []

    def state(self, daemon: str) -> ServiceState:
        return self._states[daemon]

    @property
    def states(self) -> Dict[str, ServiceState]:
        return dict(self._states)

    def mark_configured(self, daemon: str) -> None:
        self._transition(daemon, ServiceState.CONFIGURED)

    def refresh_addressing(self) -> None:
        if self._svc.is_active("dhcpcd"):
            logger.info("[services] restarting dhcpcd")
            res = self._svc.restart("dhcpcd")
            if not res.ok:
                self._warn(f"dhcpcd restart failed: {res.output}")

    def start(self, daemon: str) -> None:
        required = START_PREREQUISITES.get(daemon)
        if required and self._states[required] not in (ServiceState.RUNNING, ServiceState.VERIFIED):
            raise ServiceStartError(daemon, f"{required} is not running")

        logger.info("[services] starting %s", daemon)
        if self._svc.is_masked(daemon):
            self._svc.unmask(daemon)
        self._transition(daemon, ServiceState.STARTING)

        res = self._svc.enable(daemon)
        if not res.ok:
            self._fail(daemon, f"enable failed: {res.output}")
        # A running daemon only rereads its config on restart
        action = "restart" if self._svc.is_active(daemon) else "start"
        res = self._svc.restart(daemon) if action == "restart" else self._svc.start(daemon)
        if not res.ok:
            self._fail(daemon, f"{action} failed: {res.output}")

        if not self._wait(lambda: self._svc.is_active(daemon), self._settings.service_start_timeout):
            self._fail(daemon, f"not active after {self._settings.service_start_timeout}s")
        self._transition(daemon, ServiceState.RUNNING)
        logger.info("[services] %s running", daemon)

    def start_all(self) -> None:
        for daemon in MANAGED_DAEMONS:
            self.start(daemon)

    def verify(self, ap_interface: str, ap_ip: str, expected_ssid: str) -> List[str]:
        """Check both daemons, the AP address and the radio mode.

        A missing daemon or address aborts; an unconfirmed radio mode or SSID only warns.
        """
        for daemon in MANAGED_DAEMONS:
            if not self._svc.is_active(daemon):
                self._fail(daemon, "not running at verification")

        if not self._wait(lambda: ap_ip in self._net.ipv4_addresses(ap_interface), self._settings.address_timeout):
            raise VerificationError(f"interface {ap_interface} does not have IP {ap_ip}")

        if not self._wait(lambda: self._net.interface_mode(ap_interface) == "AP", self._settings.ap_mode_timeout):
            self._warn(str(VerificationWarning(f"interface {ap_interface} may not be in AP mode")))
        else:
            ssid = self._net.interface_ssid(ap_interface)
            if ssid is not None and ssid != expected_ssid:
                self._warn(str(VerificationWarning(f"interface {ap_interface} broadcasts {ssid!r}, expected {expected_ssid!r}")))

        for daemon in MANAGED_DAEMONS:
            self._transition(daemon, ServiceState.VERIFIED)
        logger.info("[services] AP verification completed")
        return list(self.warnings)

    def diagnostics(self, daemon: str) -> str:
        return "\n".join([
            f"--- systemctl status {daemon} ---",
            self._svc.status_text(daemon),
            f"--- journalctl -u {daemon} (last 20) ---",
            self._svc.log_tail(daemon, 20),
        ])

    def _fail(self, daemon: str, reason: str) -> None:
        if ServiceState.FAILED in TRANSITIONS[self._states[daemon]]:
            self._states[daemon] = ServiceState.FAILED
        logger.error("[services] %s failed: %s", daemon, reason)
        raise ServiceStartError(daemon, reason, self.diagnostics(daemon))

    def _transition(self, daemon: str, new: ServiceState) -> None:
        current = self._states[daemon]
        if new not in TRANSITIONS[current]:
            raise ValueError(f"{daemon}: invalid transition {current.value} -> {new.value}")
        self._states[daemon] = new

    def _wait(self, predicate: Callable[[], bool], timeout: float) -> bool:
        return wait_until(predicate, timeout, interval=self._settings.poll_interval, sleep=self._sleep)

    def _warn(self, msg: str) -> None:
        logger.warning("[services] %s", msg)
        self.warnings.append(msg)
