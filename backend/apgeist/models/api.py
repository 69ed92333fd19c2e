from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class ProvisionRequest(BaseModel):
    ssid: str
    passphrase: str
    ap_ip: str
    dhcp_start: str
    dhcp_end: str
    channel: int = 7
    country_code: str = "PK"


class StageStatusModel(BaseModel):
    name: str
    status: str
    message: str = ""
    warnings: List[str] = Field(default_factory=list)


class ProvisionResponse(BaseModel):
    success: bool
    interface: Optional[str] = None
    upstream_interface: Optional[str] = None
    stages: List[StageStatusModel] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    diagnostics: str = ""
    rolled_back: List[str] = Field(default_factory=list)
    troubleshooting: str = ""


class InterfaceStatus(BaseModel):
    name: str
    is_wireless: bool
    is_up: bool
    ipv4_addresses: List[str] = Field(default_factory=list)
    mode: Optional[str] = None
    ap_capable: Optional[bool] = None


class InterfacesResponse(BaseModel):
    interfaces: List[InterfaceStatus]
    selected: Optional[str] = None


class ServicesResponse(BaseModel):
    status: Dict[str, str]


class StatusResponse(BaseModel):
    last_report: Optional[Dict[str, Any]] = None
