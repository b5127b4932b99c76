"""
HTTP API for stake history.

Run with: stake-api  (or ``python api.py``)
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from cache import CacheMonitor, CacheSweeper, TTLCache
from config.logging import configure_logging, log_error
from config.settings import Settings
from error_handling.circuit_breaker import CircuitBreaker
from error_handling.errors import InvalidParameterError, StakeApiError
from staking.ledger import ContractLedgerClient, LedgerQuery
from staking.models import PageKind, PaymentRecord
from staking.payments import CryptApiPaymentLinks, PaymentLinkGenerator
from staking.service import StakeHistoryService

logger = structlog.get_logger()

STATUS_BY_KIND = {
    PageKind.SUCCESS: "success",
    PageKind.NO_DATA: "no data",
    PageKind.PAGE_OUT_OF_RANGE: "no new page",
}


class PaymentRecordOut(BaseModel):
    """One stake payment."""
    sender: str
    amount: int
    time: int

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentRecordOut":
        return cls(**record.to_dict())


class StakeHistoryResponse(BaseModel):
    """Stake history page response model."""
    status: str
    page: List[PaymentRecordOut]
    page_number: int
    page_size: int
    total_records: int


class StakeTotalResponse(BaseModel):
    """Total stake response model."""
    status: str
    address: str
    total: int


class FailResponse(BaseModel):
    """Error response model."""
    status: str = "fail"
    message: str


def _parse_int(raw: Optional[str], default: int, message: str) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidParameterError(message) from None


router = APIRouter()


@router.get("/healthchecker")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check endpoint for monitoring.

    Reports the ledger circuit state when the ledger client has one; an open
    circuit does not make the API itself unhealthy.
    """
    body: Dict[str, Any] = {"status": "success", "message": "ok"}
    circuit_state = getattr(request.app.state.ledger, "circuit_state", None)
    if circuit_state is not None:
        body["ledger_circuit"] = circuit_state()["state"]
    return body


@router.get(
    "/stake/history/user/{address}",
    response_model=StakeHistoryResponse,
    responses={400: {"model": FailResponse}, 502: {"model": FailResponse}, 504: {"model": FailResponse}},
    tags=["staking"],
)
async def user_stake_history(
    request: Request,
    address: str,
    page: Optional[str] = Query(None, description="Page number"),
    page_size: Optional[str] = Query(None, alias="pageSize", description="Page size"),
):
    """Get a page of stake history for a wallet, newest first."""
    settings: Settings = request.app.state.settings
    page_number = _parse_int(page, 1, "Invalid page number")
    size = _parse_int(page_size, settings.DEFAULT_PAGE_SIZE, "Invalid page size")

    service: StakeHistoryService = request.app.state.history_service
    result = await service.get_page(address, page_number, size)

    return StakeHistoryResponse(
        status=STATUS_BY_KIND[result.kind],
        page=[PaymentRecordOut.from_record(r) for r in result.records],
        page_number=result.page,
        page_size=result.page_size,
        total_records=result.total_records,
    )


@router.get(
    "/stake/total/user/{address}",
    response_model=StakeTotalResponse,
    responses={400: {"model": FailResponse}, 502: {"model": FailResponse}, 504: {"model": FailResponse}},
    tags=["staking"],
)
async def user_total_stake(request: Request, address: str):
    """Get the total amount staked by a wallet."""
    service: StakeHistoryService = request.app.state.history_service
    total = await service.get_total(address)
    return StakeTotalResponse(status="success", address=address, total=total)


@router.get(
    "/stake/pay",
    responses={502: {"model": FailResponse}},
    tags=["staking"],
)
async def stake_payment_link(
    request: Request,
    value: str = Query("", description="Transaction value"),
) -> Dict[str, Any]:
    """Generate the payment address and QR code for a stake."""
    payments: PaymentLinkGenerator = request.app.state.payments
    return await payments.generate_payment_link(value)


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def create_app(
    settings: Optional[Settings] = None,
    ledger: Optional[LedgerQuery] = None,
    payments: Optional[PaymentLinkGenerator] = None,
) -> FastAPI:
    """
    Build the API with its cache, ledger client and payment client wired in.

    Args:
        settings: Application settings, read from the environment when omitted
        ledger: Ledger Query implementation, a contract client when omitted
        payments: Payment link generator, a CryptAPI client when omitted
    """
    settings = settings or Settings()

    if ledger is None:
        ledger = ContractLedgerClient(
            node_url=settings.NODE_URL,
            contract_address=settings.CONTRACT_ADDRESS,
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
            breaker=CircuitBreaker(
                failure_threshold=settings.CIRCUIT_FAILURE_THRESHOLD,
                recovery_timeout=settings.CIRCUIT_RECOVERY_SECONDS,
            ),
        )
    if payments is None:
        payments = CryptApiPaymentLinks(
            own_address=settings.CONTRACT_ADDRESS,
            callback_url=settings.CALLBACK,
            coin=settings.CRYPTAPI_COIN,
            base_url=settings.CRYPTAPI_BASE_URL,
            qr_size=settings.QR_SIZE,
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        )

    history_cache: TTLCache = TTLCache(
        default_ttl=settings.HISTORY_CACHE_TTL_SECONDS,
        max_size=settings.CACHE_MAX_ENTRIES,
    )
    monitor = CacheMonitor(history_cache)
    sweeper = CacheSweeper(history_cache, settings.CACHE_SWEEP_INTERVAL_SECONDS, monitor)
    history_service = StakeHistoryService(
        ledger=ledger,
        cache=history_cache,
        history_ttl=settings.HISTORY_CACHE_TTL_SECONDS,
        upstream_timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        monitor=monitor,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("api_starting", node_url=settings.NODE_URL, contract=settings.CONTRACT_ADDRESS)
        sweeper.start()
        yield
        await sweeper.stop()
        for client in (ledger, payments):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        monitor.log_metrics()
        logger.info("api_stopped")

    app = FastAPI(
        title="Easy Get Coin Stake API",
        description="Stake history and payment links for easy get coin games.",
        version=settings.API_VERSION,
        docs_url="/api/swagger",
        openapi_url="/api/openapi.json",
        debug=settings.MODE == "debug",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.history_cache = history_cache
    app.state.ledger = ledger
    app.state.history_service = history_service
    app.state.payments = payments

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def recover_unhandled_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("unhandled_request_error", path=request.url.path, method=request.method)
            return JSONResponse(
                status_code=500,
                content=FailResponse(message="Internal server error").model_dump(),
            )

    @app.exception_handler(StakeApiError)
    async def stake_api_error_handler(request: Request, exc: StakeApiError) -> JSONResponse:
        if exc.http_status >= 500:
            log_error(logger, exc, {"path": request.url.path})
        else:
            logger.warning("request_rejected", path=request.url.path, error=exc.message)
        return JSONResponse(
            status_code=exc.http_status,
            content=FailResponse(message=exc.message).model_dump(),
        )

    app.include_router(router, prefix="/api")
    return app


def main() -> None:
    """Start the API server."""
    import uvicorn

    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        create_app(settings),
        host=settings.API_HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
