from fastapi import APIRouter, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from pydantic import ValidationError
import asyncio
import httpx
import logging
import uvicorn

# Use relative imports
from . import schemas, logic, config
from .rate_client import RateLookupClient, RateServiceError

# Basic logging setup
logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
logger = logging.getLogger(__name__)

INSTRUCTIONS = "Try POSTing data to /compute such as: `curl localhost:8002/compute -XPOST -d '...'`"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "api,Keep-Alive,User-Agent,Content-Type",
}

DISCONNECT_POLL_SECONDS = 0.1
CLIENT_CLOSED_REQUEST = 499 # Nobody reads it, the client is gone


class ClientDisconnected(Exception):
    pass


def build_response(body: str = "", status_code: int = 200, media_type: str | None = None) -> Response:
    """Every /compute response goes through here so CORS headers are never missing."""
    return Response(content=body, status_code=status_code, media_type=media_type, headers=CORS_HEADERS)


def error_response(message: str, status_code: int) -> Response:
    body = schemas.ErrorResponse(message=message).model_dump_json()
    return build_response(body, status_code, "application/json")


def describe_validation_error(error: ValidationError) -> str:
    problems = []
    for detail in error.errors(include_url=False):
        location = ".".join(str(part) for part in detail["loc"]) or "body"
        problems.append(f"{location}: {detail['msg']}")
    return "; ".join(problems)


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def run_until_disconnect(request: Request, coro):
    """
    Awaits coro, but cancels it as soon as the inbound client goes away.

    Raises ClientDisconnected in that case; otherwise returns the result of
    coro (or raises its exception).
    """
    work = asyncio.ensure_future(coro)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        work.cancel()
        watcher.cancel()
    if work in done:
        return work.result()
    raise ClientDisconnected()


router = APIRouter()


@router.get("/", response_class=PlainTextResponse, summary="Usage Instructions")
async def instructions():
    return INSTRUCTIONS


@router.options("/compute", summary="CORS Pre-flight")
async def compute_preflight():
    return build_response()


@router.post("/compute", tags=["Orders"], summary="Compute Order Total")
async def compute_endpoint(request: Request):
    """
    Receives an order, looks up the sales tax rate for its shipping zip and
    returns the order with total = subtotal * (1 + rate).
    """
    body = await request.body()
    try:
        order = schemas.Order.model_validate_json(body)
    except ValidationError as e:
        message = describe_validation_error(e)
        logger.warning(f"Rejected malformed order: {message}")
        return error_response(f"Invalid order: {message}", 400)

    logger.info(f"Received compute request for order_id: {order.order_id}, zip: {order.shipping_zip!r}")
    rate_client: RateLookupClient = request.app.state.rate_client
    try:
        rate_text = await run_until_disconnect(request, rate_client.fetch_rate_text(order.shipping_zip))
        rate = logic.parse_rate(rate_text)
        order = logic.compute_total(order, rate)
    except ClientDisconnected:
        logger.info(f"Client went away while looking up rate for order {order.order_id}, lookup cancelled")
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    except RateServiceError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        # Log the exception for debugging
        logger.exception(f"Error computing total for order {order.order_id}: {e}")
        return error_response("An unexpected error occurred during total calculation.", 500)

    return build_response(order.model_dump_json(indent=2), 200, "application/json")


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    # Unknown paths and unknown methods on known paths are both plain 404s
    if exc.status_code in (404, 405):
        return Response(status_code=404)
    return await http_exception_handler(request, exc)


def create_app(settings: config.Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Builds the service around one Settings object, read once here and never again."""
    settings = settings or config.Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Order Total Service starting up...")
        logger.info(f"Listening on {settings.app_host}:{settings.app_port}")
        logger.info(f"Sales tax rate service: {settings.rate_service_url} (timeout {settings.rate_service_timeout_seconds}s)")
        yield
        logger.info("Order Total Service shutting down...")

    app = FastAPI(
        title="Order Total Service",
        description="Computes order totals using the sales tax rate for the shipping zip.",
        version="0.1.0",
        lifespan=lifespan,
        # Only the routes on router exist; everything else is a 404
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.rate_client = RateLookupClient(
        settings.rate_service_url,
        settings.rate_service_timeout_seconds,
        transport=transport,
    )
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    settings: config.Settings = app.state.settings
    uvicorn.run(app, host=settings.app_host, port=settings.app_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
