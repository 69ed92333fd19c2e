from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DOTTED_QUAD_RE = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")
IFACE_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]{1,15}$")
COUNTRY_RE = re.compile(r"^[A-Z]{2}$")
# 2.4 GHz channels; 14 is only legal in Japan
CHANNELS_24GHZ = range(1, 14)


def parse_dotted_quad(value: str) -> ipaddress.IPv4Address:
    m = DOTTED_QUAD_RE.match(value.strip()) if isinstance(value, str) else None
    if not m:
        raise ValueError(f"not a dotted-quad IPv4 address: {value!r}")
    octets = [int(g) for g in m.groups()]
    if any(o > 255 for o in octets):
        raise ValueError(f"octet out of range in {value!r}")
    return ipaddress.IPv4Address(".".join(str(o) for o in octets))


class APConfig(BaseModel):
    """Validated access point parameters, threaded through every stage."""

    model_config = ConfigDict(frozen=True)

    ssid: str
    passphrase: str = Field(repr=False)
    ap_ip: str
    dhcp_start: str
    dhcp_end: str
    channel: int = 7
    country_code: str = "PK"
    interface: Optional[str] = None

    @field_validator("ssid")
    @classmethod
    def _check_ssid(cls, v: str) -> str:
        size = len(v.encode("utf-8"))
        if size < 1 or size > 32:
            raise ValueError("SSID must be 1-32 bytes")
        if any(ord(c) < 0x20 or ord(c) == 0x7F for c in v):
            raise ValueError("SSID must not contain control characters")
        return v

    @field_validator("passphrase")
    @classmethod
    def _check_passphrase(cls, v: str) -> str:
        if len(v) < 8 or len(v) > 63:
            raise ValueError("passphrase must be 8-63 characters")
        if any(not 0x20 <= ord(c) <= 0x7E for c in v):
            raise ValueError("passphrase must be printable ASCII")
        return v

    @field_validator("ap_ip", "dhcp_start", "dhcp_end")
    @classmethod
    def _check_ipv4(cls, v: str) -> str:
        return str(parse_dotted_quad(v))

    @field_validator("country_code")
    @classmethod
    def _check_country(cls, v: str) -> str:
        v = v.strip().upper()
        if not COUNTRY_RE.match(v):
            raise ValueError("country code must be two letters")
        return v

    @field_validator("interface")
    @classmethod
    def _check_interface(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not IFACE_NAME_RE.match(v):
            raise ValueError(f"invalid interface name: {v!r}")
        return v

    @model_validator(mode="after")
    def _check_ranges(self) -> "APConfig":
        if self.channel not in CHANNELS_24GHZ and not (self.channel == 14 and self.country_code == "JP"):
            raise ValueError(f"channel {self.channel} is not legal in {self.country_code}")
        ap = ipaddress.IPv4Address(self.ap_ip)
        start = ipaddress.IPv4Address(self.dhcp_start)
        end = ipaddress.IPv4Address(self.dhcp_end)
        if ap.packed[3] in (0, 255):
            raise ValueError("AP IP must be a host address in its /24")
        net = self.network
        if start not in net or end not in net:
            raise ValueError(f"DHCP range must lie inside {net}")
        if start.packed[3] >= end.packed[3]:
            raise ValueError("DHCP range start must be below range end")
        if start <= ap <= end:
            raise ValueError("AP IP must not fall inside the DHCP range")
        return self

    @property
    def network(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Network(f"{self.ap_ip}/24", strict=False)

    @property
    def netmask(self) -> str:
        return str(self.network.netmask)

    @property
    def ap_cidr(self) -> str:
        return f"{self.ap_ip}/24"

    def with_interface(self, name: str) -> "APConfig":
        # Re-validate through the constructor rather than model_copy(update=...)
        return APConfig(**{**self.model_dump(), "interface": name})


@dataclass
class InterfaceCandidate:
    name: str
    ap_capable: Optional[bool] = None  # None when the driver gives no clear answer


@dataclass
class BackupRecord:
    original_path: str
    backup_path: str
    created_at: datetime


@dataclass(frozen=True)
class NATRule:
    upstream_interface: str
    ap_interface: str


class ServiceState(str, Enum):
    UNCONFIGURED = "Unconfigured"
    CONFIGURED = "Configured"
    STARTING = "Starting"
    RUNNING = "Running"
    VERIFIED = "Verified"
    FAILED = "Failed"


class StageStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class StageResult:
    name: str
    status: StageStatus
    message: str = ""
    warnings: List[str] = field(default_factory=list)


@dataclass
class ProvisionReport:
    success: bool
    interface: Optional[str] = None
    upstream_interface: Optional[str] = None
    stages: List[StageResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    diagnostics: str = ""
    backups: List[BackupRecord] = field(default_factory=list)
    rolled_back: List[str] = field(default_factory=list)
    troubleshooting: str = ""
    finished_at: Optional[datetime] = None

    @property
    def completed_stages(self) -> List[str]:
        return [s.name for s in self.stages if s.status in (StageStatus.OK, StageStatus.WARNING)]
