"""FastAPI entry point for the brokerage back office."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from brokerdesk import __version__
from brokerdesk.core.commission import CommissionError
from brokerdesk.database import init_db
from brokerdesk.routers import agents, commission, offices, reports, settings, transactions

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="Broker Desk", version=__version__, lifespan=lifespan)

app.include_router(offices.router)
app.include_router(agents.router)
app.include_router(transactions.router)
app.include_router(commission.router)
app.include_router(settings.router)
app.include_router(reports.router)


@app.get("/health")
def health() -> Response:
    """Simple health endpoint for load balancers and platform checks."""
    return Response(content='{"status":"ok"}', media_type="application/json")


@app.exception_handler(CommissionError)
async def commission_error_handler(request: Request, exc: CommissionError):
    """Invalid amounts or ratios are rejected before anything is stored."""
    logger.info("Rejected commission input on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})
