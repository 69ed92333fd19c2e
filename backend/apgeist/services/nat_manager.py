from __future__ import annotations

import logging
import os
import shutil
from typing import Callable, List, Optional, Sequence

from ..config import Settings, settings as default_settings
from ..errors import NoPersistence, NoUpstreamInterface, RuleInstallError
from ..models.ap import NATRule
from .host import NetworkHost


logger = logging.getLogger(__name__)

SYSCTL_FORWARD_LINE = "net.ipv4.ip_forward=1"


def nat_rule_commands(rule: NATRule) -> List[List[str]]:
    up, ap = rule.upstream_interface, rule.ap_interface
    return [
        ["iptables", "-t", "nat", "-F"],
        ["iptables", "-t", "mangle", "-F"],
        ["iptables", "-F"],
        ["iptables", "-X"],
        ["iptables", "-t", "nat", "-A", "POSTROUTING", "-o", up, "-j", "MASQUERADE"],
        ["iptables", "-A", "FORWARD", "-i", up, "-o", ap, "-m", "state", "--state", "RELATED,ESTABLISHED", "-j", "ACCEPT"],
        ["iptables", "-A", "FORWARD", "-i", ap, "-o", up, "-j", "ACCEPT"],
        ["iptables", "-A", "INPUT", "-i", ap, "-j", "ACCEPT"],
        ["iptables", "-A", "OUTPUT", "-o", ap, "-j", "ACCEPT"],
    ]


class NATManager:
    def __init__(
        self,
        cfg: Optional[Settings] = None,
        network: Optional[NetworkHost] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> None:
        self._settings = cfg or default_settings
        self._net = network or NetworkHost(sys_class_net=self._settings.sys_class_net)
        self._which = which
        self.warnings: List[str] = []

    def enable_forwarding(self, ap_interface: str) -> NATRule:
        self.warnings = []
        self._enable_ip_forward()
        rule = NATRule(upstream_interface=self.upstream_interface(), ap_interface=ap_interface)
        logger.info("[nat] using %s as internet interface", rule.upstream_interface)
        for cmd in nat_rule_commands(rule):
            self._iptables(cmd)
        self._persist()
        logger.info("[nat] NAT %s -> %s installed", rule.ap_interface, rule.upstream_interface)
        return rule

    def upstream_interface(self) -> str:
        iface = self._net.default_route_interface()
        if iface:
            return iface
        fallback = self._settings.fallback_upstream_iface
        self._warn(NoUpstreamInterface(f"could not detect internet interface, using {fallback}"))
        return fallback

    def _enable_ip_forward(self) -> None:
        s = self._settings
        try:
            existing = ""
            if os.path.exists(s.sysctl_conf):
                with open(s.sysctl_conf, "r", encoding="utf-8") as f:
                    existing = f.read()
            active = {line.replace(" ", "") for line in existing.splitlines() if not line.lstrip().startswith("#")}
            if SYSCTL_FORWARD_LINE not in active:
                with open(s.sysctl_conf, "a", encoding="utf-8") as f:
                    if existing and not existing.endswith("\n"):
                        f.write("\n")
                    f.write(SYSCTL_FORWARD_LINE + "\n")
            with open(s.ip_forward_path, "w", encoding="utf-8") as f:
                f.write("1\n")
        except OSError as exc:
            raise RuleInstallError("enable net.ipv4.ip_forward", str(exc)) from exc

    def _iptables(self, cmd: Sequence[str]) -> None:
        res = self._net.run(cmd)
        if not res.ok:
            raise RuleInstallError(" ".join(cmd), res.output)

    def _persist(self) -> None:
        if self._which("netfilter-persistent"):
            res = self._net.run(["netfilter-persistent", "save"])
            if not res.ok:
                self._warn(NoPersistence(f"netfilter-persistent save failed: {res.output}"))
            return
        if self._which("iptables-save"):
            for tool, path in (("iptables-save", self._settings.iptables_rules_v4), ("ip6tables-save", self._settings.iptables_rules_v6)):
                res = self._net.run([tool])
                if not res.ok:
                    self._warn(NoPersistence(f"{tool} failed: {res.output}"))
                    continue
                try:
                    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
                    with open(path, "w", encoding="utf-8") as f:
                        f.write(res.stdout)
                except OSError as exc:
                    self._warn(NoPersistence(f"could not write {path}: {exc}"))
            return
        self._warn(NoPersistence("no firewall persistence tool found; rules last until reboot"))

    def _warn(self, warning: Warning) -> None:
        logger.warning("[nat] %s", warning)
        self.warnings.append(str(warning))
