from fastapi import APIRouter, Depends

from ..config import settings
from ..errors import NoInterfaceFound
from ..models.api import InterfacesResponse, InterfaceStatus
from ..security.auth import require_auth
from ..services.host import NetworkHost
from ..services.interface_detector import InterfaceDetector


router = APIRouter()


def get_network() -> NetworkHost:
    return NetworkHost(sys_class_net=settings.sys_class_net)


@router.get("/", response_model=InterfacesResponse, dependencies=[Depends(require_auth)])
def list_interfaces(network: NetworkHost = Depends(get_network)) -> InterfacesResponse:
    detector = InterfaceDetector(network)
    candidates = detector.candidates()
    try:
        selected = detector.select(candidates).name
    except NoInterfaceFound:
        selected = None
    return InterfacesResponse(
        interfaces=[
            InterfaceStatus(
                name=c.name,
                is_wireless=network.is_wireless(c.name),
                is_up=network.is_link_up(c.name),
                ipv4_addresses=network.ipv4_addresses(c.name),
                mode=network.interface_mode(c.name),
                ap_capable=detector.ap_capability(c.name),
            )
            for c in candidates
        ],
        selected=selected,
    )
