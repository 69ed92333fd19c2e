from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    # Defaults offered to the operator when no value is given
    ap_ssid: str = Field("RadxaAP", alias="AP_SSID")
    ap_passphrase: str = Field("radxa123456", alias="AP_PASSPHRASE")
    ap_ip: str = Field("192.168.4.1", alias="AP_IP")
    dhcp_start: str = Field("192.168.4.2", alias="DHCP_START")
    dhcp_end: str = Field("192.168.4.20", alias="DHCP_END")
    channel: int = Field(7, alias="AP_CHANNEL")
    country_code: str = Field("PK", alias="AP_COUNTRY")

    # Managed artifacts
    hostapd_conf: str = Field("/etc/hostapd/hostapd.conf", alias="HOSTAPD_CONF")
    hostapd_default: str = Field("/etc/default/hostapd", alias="HOSTAPD_DEFAULT")
    dnsmasq_conf: str = Field("/etc/dnsmasq.conf", alias="DNSMASQ_CONF")
    dhcpcd_conf: str = Field("/etc/dhcpcd.conf", alias="DHCPCD_CONF")
    sysctl_conf: str = Field("/etc/sysctl.conf", alias="SYSCTL_CONF")
    ip_forward_path: str = Field("/proc/sys/net/ipv4/ip_forward", alias="IP_FORWARD_PATH")
    iptables_rules_v4: str = Field("/etc/iptables/rules.v4", alias="IPTABLES_RULES_V4")
    iptables_rules_v6: str = Field("/etc/iptables/rules.v6", alias="IPTABLES_RULES_V6")
    sys_class_net: str = Field("/sys/class/net", alias="SYS_CLASS_NET")

    upstream_dns: List[str] = Field(default_factory=lambda: ["8.8.8.8", "8.8.4.4"], alias="UPSTREAM_DNS")
    fallback_upstream_iface: str = Field("eth0", alias="FALLBACK_UPSTREAM_IFACE")
    required_packages: List[str] = Field(
        default_factory=lambda: ["hostapd", "dnsmasq", "iptables-persistent", "iw", "wireless-tools"],
        alias="REQUIRED_PACKAGES",
    )
    install_missing_packages: bool = Field(True, alias="INSTALL_MISSING_PACKAGES")

    # Poll loops standing in for fixed settling sleeps
    service_start_timeout: float = Field(10.0, alias="SERVICE_START_TIMEOUT")
    link_up_timeout: float = Field(5.0, alias="LINK_UP_TIMEOUT")
    address_timeout: float = Field(10.0, alias="ADDRESS_TIMEOUT")
    ap_mode_timeout: float = Field(8.0, alias="AP_MODE_TIMEOUT")
    poll_interval: float = Field(0.5, alias="POLL_INTERVAL")

    rollback_on_failure: bool = Field(True, alias="ROLLBACK_ON_FAILURE")
    start_speed_test: bool = Field(False, alias="START_SPEED_TEST")

    app_data_dir: str = Field("/opt/apgeist/data", alias="APP_DATA_DIR")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, alias="LOG_FILE")

    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8080, alias="PORT")
    admin_token: str = Field("change-me-to-a-long-random-string", alias="ADMIN_TOKEN")

    def managed_paths(self) -> List[str]:
        return [self.hostapd_conf, self.dnsmasq_conf, self.dhcpcd_conf, self.hostapd_default]


settings = Settings()
