from __future__ import annotations

import logging
import os
import re
from typing import List, Optional

from ..config import Settings, settings as default_settings
from ..errors import ConfigurationError, WriteError
from ..models.ap import APConfig
from .backup_manager import BackupManager


logger = logging.getLogger(__name__)

HOSTAPD_DRIVER = "nl80211"
HW_MODE = "g"
HT_CAPAB = "[HT40][SHORT-GI-20][SHORT-GI-40]"
MAX_STATIONS = 10
BEACON_INTERVAL = 100
DTIM_PERIOD = 2
LEASE_TIME = "24h"
DNS_CACHE_SIZE = 1000

BLOCK_BEGIN = "# BEGIN apgeist {iface}"
BLOCK_END = "# END apgeist {iface}"
MANAGED_BLOCK_RE = re.compile(r"^# BEGIN apgeist (\S+)\n.*?^# END apgeist \1\n?", re.M | re.S)


def render_hostapd(cfg: APConfig) -> str:
    lines = [
        "# Managed by apgeist; regenerated on every provisioning run",
        f"interface={cfg.interface}",
        f"driver={HOSTAPD_DRIVER}",
        f"ssid={cfg.ssid}",
        f"hw_mode={HW_MODE}",
        f"channel={cfg.channel}",
        f"country_code={cfg.country_code}",
        "wmm_enabled=1",
        "ieee80211n=1",
        f"ht_capab={HT_CAPAB}",
        "macaddr_acl=0",
        "auth_algs=1",
        "ignore_broadcast_ssid=0",
        "wpa=2",
        f"wpa_passphrase={cfg.passphrase}",
        "wpa_key_mgmt=WPA-PSK",
        "wpa_pairwise=TKIP",
        "rsn_pairwise=CCMP",
        f"beacon_int={BEACON_INTERVAL}",
        f"dtim_period={DTIM_PERIOD}",
        f"max_num_sta={MAX_STATIONS}",
    ]
    return "\n".join(lines) + "\n"


def render_hostapd_default(hostapd_conf_path: str) -> str:
    return f'DAEMON_CONF="{hostapd_conf_path}"\n'


def render_dnsmasq(cfg: APConfig, upstream_dns: List[str]) -> str:
    lines = [
        "# Managed by apgeist; DHCP and DNS for the access point",
        f"interface={cfg.interface}",
        "bind-interfaces",
        f"dhcp-range={cfg.dhcp_start},{cfg.dhcp_end},{cfg.netmask},{LEASE_TIME}",
        f"dhcp-option=3,{cfg.ap_ip}",
        f"dhcp-option=6,{cfg.ap_ip}",
    ]
    lines += [f"server={s}" for s in upstream_dns]
    lines += [
        "domain-needed",
        "bogus-priv",
        "log-queries",
        "log-dhcp",
        f"cache-size={DNS_CACHE_SIZE}",
    ]
    return "\n".join(lines) + "\n"


def render_dhcpcd_block(cfg: APConfig) -> str:
    return "\n".join([
        BLOCK_BEGIN.format(iface=cfg.interface),
        f"interface {cfg.interface}",
        f"static ip_address={cfg.ap_cidr}",
        "nohook wpa_supplicant",
        BLOCK_END.format(iface=cfg.interface),
    ]) + "\n"


def merge_dhcpcd(existing: str, block: str) -> str:
    """Drop any block written by an earlier run and append the new one."""
    base = MANAGED_BLOCK_RE.sub("", existing).rstrip("\n")
    if not base:
        return block
    return base + "\n\n" + block


class ConfigSynthesizer:
    def __init__(self, cfg: Optional[Settings] = None, backups: Optional[BackupManager] = None) -> None:
        self._settings = cfg or default_settings
        self._backups = backups or BackupManager()

    def write_hostapd(self, ap: APConfig) -> List[str]:
        self._require_interface(ap)
        s = self._settings
        self._write(s.hostapd_conf, render_hostapd(ap), mode=0o600)
        self._write(s.hostapd_default, render_hostapd_default(s.hostapd_conf))
        logger.info("[config_synth] hostapd configured for %s", ap.interface)
        return [s.hostapd_conf, s.hostapd_default]

    def write_dnsmasq(self, ap: APConfig) -> List[str]:
        self._require_interface(ap)
        self._write(self._settings.dnsmasq_conf, render_dnsmasq(ap, self._settings.upstream_dns))
        logger.info("[config_synth] dnsmasq configured: %s-%s", ap.dhcp_start, ap.dhcp_end)
        return [self._settings.dnsmasq_conf]

    def write_static_ip(self, ap: APConfig) -> List[str]:
        self._require_interface(ap)
        path = self._settings.dhcpcd_conf
        try:
            with open(path, "r", encoding="utf-8") as f:
                existing = f.read()
        except FileNotFoundError:
            existing = ""
        except OSError as exc:
            raise WriteError(path, str(exc)) from exc
        self._write(path, merge_dhcpcd(existing, render_dhcpcd_block(ap)))
        logger.info("[config_synth] static %s bound to %s", ap.ap_cidr, ap.interface)
        return [path]

    def synthesize(self, ap: APConfig) -> List[str]:
        return self.write_hostapd(ap) + self.write_dnsmasq(ap) + self.write_static_ip(ap)

    @staticmethod
    def _require_interface(ap: APConfig) -> None:
        if not ap.interface:
            raise ConfigurationError("no interface selected; run detection before synthesis")

    def _write(self, path: str, content: str, mode: int = 0o644) -> None:
        self._backups.snapshot(path)
        tmp = path + ".tmp"
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(content)
            os.chmod(tmp, mode)
            os.replace(tmp, path)
        except OSError as exc:
            try:
                os.remove(tmp)
            except OSError:
                pass
            raise WriteError(path, str(exc)) from exc
