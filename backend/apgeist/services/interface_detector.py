from __future__ import annotations

import logging
import re
from typing import List, Optional

from ..errors import InterfaceUnusable, NoInterfaceFound
from ..models.ap import InterfaceCandidate
from .host import NetworkHost


logger = logging.getLogger(__name__)

# Legacy wlan0 plus predictable names such as wlp1s0 / wlP2p33s0
WIRELESS_NAME_RE = re.compile(r"^(wl|wlan)")


class InterfaceDetector:
    def __init__(self, network: Optional[NetworkHost] = None) -> None:
        self._net = network or NetworkHost()
        self.warnings: List[str] = []

    def candidates(self) -> List[InterfaceCandidate]:
        # Sorted so the pick never depends on sysfs listing order
        names = sorted(n for n in self._net.list_interfaces() if WIRELESS_NAME_RE.match(n))
        return [InterfaceCandidate(name=n) for n in names]

    def select(self, candidates: List[InterfaceCandidate]) -> InterfaceCandidate:
        if not candidates:
            raise NoInterfaceFound("no WiFi interface found; make sure the WiFi module is installed")
        chosen = candidates[0]
        if len(candidates) == 1:
            logger.info("[interface_detector] found WiFi interface %s", chosen.name)
        else:
            unused = ", ".join(c.name for c in candidates[1:])
            self._warn(f"multiple WiFi interfaces found; using {chosen.name}, leaving unused: {unused}")
        return chosen

    def detect(self) -> str:
        self.warnings = []
        chosen = self.select(self.candidates())

        if self._net.interface_info(chosen.name) is None:
            raise InterfaceUnusable(f"interface {chosen.name} is not accessible via iw")

        chosen.ap_capable = self.ap_capability(chosen.name)
        if chosen.ap_capable is not True:
            self._warn(f"AP mode support not clearly indicated for {chosen.name}, proceeding anyway")
        return chosen.name

    def ap_capability(self, name: str) -> Optional[bool]:
        """True or False from the phy's supported modes; None when iw cannot tell."""
        phy = self._net.phy_name(name)
        phy_info = self._net.phy_info(phy) if phy else None
        return self._net.supports_ap_mode(phy_info) if phy_info else None

    def _warn(self, msg: str) -> None:
        logger.warning("[interface_detector] %s", msg)
        self.warnings.append(msg)
