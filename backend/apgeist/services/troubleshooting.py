from __future__ import annotations

from typing import Optional

from ..models.ap import APConfig


def render_troubleshooting(
    ap: Optional[APConfig],
    interface: Optional[str] = None,
    upstream: Optional[str] = None,
    driver: Optional[str] = None,
    diagnostics: str = "",
    rolled_back: bool = False,
) -> str:
    iface = interface or (ap.interface if ap else None) or "<wifi interface>"
    lines = ["Troubleshooting information:"]
    if diagnostics:
        lines += ["", "Captured diagnostics:", diagnostics.rstrip()]
    lines += [
        "",
        "1. If clients can't connect:",
        "   - Check the password is correct",
        "   - Try a different channel (1, 6, 11)",
        "   - Check 'journalctl -u hostapd -f'",
        "",
        "2. If there is no internet access:",
        "   - Check NAT rules: iptables -t nat -L",
        "   - Verify IP forwarding: cat /proc/sys/net/ipv4/ip_forward",
        "   - Check the default route: ip route",
        f"   - Upstream interface in use: {upstream or 'not determined'}",
        "",
        "3. Logs to check:",
        "   - hostapd: journalctl -u hostapd -f",
        "   - dnsmasq: journalctl -u dnsmasq -f",
        "   - DHCP leases: cat /var/lib/misc/dnsmasq.leases",
        "",
        "4. Restart services:",
        "   - systemctl restart hostapd",
        "   - systemctl restart dnsmasq",
        "",
        f"5. Interface {iface}:",
        f"   - iw dev {iface} info",
        f"   - Driver: {driver or 'unknown'}",
        "   - Some chipsets need firmware updates for stable AP mode",
    ]
    if rolled_back:
        lines += [
            "",
            "Config files were restored from backup. Firewall rules, the forwarding",
            "flag and interface addresses were left as the failed run set them.",
        ]
    return "\n".join(lines)


def render_summary(ap: APConfig) -> str:
    return "\n".join([
        f"SSID: {ap.ssid}",
        f"AP IP: {ap.ap_ip}",
        f"DHCP Range: {ap.dhcp_start} - {ap.dhcp_end}",
        f"Interface: {ap.interface}",
    ])
