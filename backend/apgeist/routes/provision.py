from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..models.ap import APConfig
from ..models.api import ProvisionRequest, ProvisionResponse, ServicesResponse, StatusResponse
from ..security.auth import require_auth
from ..services.host import ServiceSupervisor
from ..services.orchestrator import ProvisioningOrchestrator
from ..services.provision_store import ProvisionStore, report_to_dict


router = APIRouter()

SERVICE_NAMES = ("hostapd", "dnsmasq", "dhcpcd")

_orchestrator: Optional[ProvisioningOrchestrator] = None
_store: Optional[ProvisionStore] = None


def get_orchestrator() -> ProvisioningOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ProvisioningOrchestrator(store=get_store())
    return _orchestrator


def get_store() -> ProvisionStore:
    global _store
    if _store is None:
        _store = ProvisionStore()
    return _store


def get_supervisor() -> ServiceSupervisor:
    return ServiceSupervisor()


# Plain def: the pipeline blocks on subprocesses, so FastAPI runs it in its threadpool
@router.post("/provision", response_model=ProvisionResponse, dependencies=[Depends(require_auth)])
def provision(
    req: ProvisionRequest,
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> ProvisionResponse:
    try:
        ap = APConfig(**req.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    report = orchestrator.run(ap)
    if not report.success and report.stages and report.stages[-1].name == "lock":
        raise HTTPException(status_code=409, detail=report.error)
    return ProvisionResponse(**report_to_dict(report))


@router.get("/status", response_model=StatusResponse, dependencies=[Depends(require_auth)])
def status(store: ProvisionStore = Depends(get_store)) -> StatusResponse:
    return StatusResponse(last_report=store.load())


@router.get("/services", response_model=ServicesResponse, dependencies=[Depends(require_auth)])
def services_status(supervisor: ServiceSupervisor = Depends(get_supervisor)) -> ServicesResponse:
    return ServicesResponse(
        status={name: "active" if supervisor.is_active(name) else "inactive" for name in SERVICE_NAMES}
    )
