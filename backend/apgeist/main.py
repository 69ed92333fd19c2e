from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .routes.interfaces import router as interfaces_router
from .routes.provision import router as provision_router
from .utils.logs import configure_logging


configure_logging(settings.log_level, settings.log_file)

app = FastAPI(title="AP Geist")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


app.include_router(interfaces_router, prefix="/api/interfaces", tags=["interfaces"])
app.include_router(provision_router, prefix="/api/ap", tags=["ap"])
