from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from app.api.v1.routes.compensation import router as compensation_router
from app.api.v1.routes.health import router as health_router
from app.core.deps import get_tier_table
from app.jobs.delay_monitor import metrics as monitor_metrics  # noqa: F401 (registers collectors)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A bad AUTOCLAIM_* setting (tier table included) aborts startup with ConfigError.
    get_tier_table()
    yield


app = FastAPI(title="RailWise Autoclaim API", lifespan=lifespan)

# Dev-friendly CORS policy: allow all origins/methods/headers so the frontend can call the API directly.
# Tighten this for production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/v1")
app.include_router(compensation_router)


@app.get("/metrics", include_in_schema=False)
def metrics():
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
