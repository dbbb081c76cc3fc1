import logging

import app.models  # noqa: F401
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import FinanceError
from app.routers import bank as bank_router
from app.routers import dues as dues_router
from app.routers import ledger as ledger_router
from app.routers import memo_matches as memo_matches_router
from app.routers import notifications as notifications_router
from app.routers import transactions as transactions_router

app = FastAPI(title="Church Finance API", version="0.1.0")

logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(bank_router.router)
app.include_router(transactions_router.router)
app.include_router(ledger_router.router)
app.include_router(dues_router.router)
app.include_router(notifications_router.router)
app.include_router(memo_matches_router.router)


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("finance_dependency_error", extra={"path": request.url.path, "code": exc.code})
    else:
        logger.info("finance_request_rejected", extra={"path": request.url.path, "code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}
