from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adcvd_tracker.api.routes import adcvd, investigations
from adcvd_tracker.config import settings
from adcvd_tracker.models.schemas import HealthResponse
from adcvd_tracker.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event("startup", "AD/CVD tracker API starting")
    yield


app = FastAPI(
    title="AD/CVD Tracker",
    description="Federal Register AD/CVD notice lookup by HTS code",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(adcvd.router)
app.include_router(investigations.router)


@app.get("/api/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", service="adcvd-tracker")
