import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from adapters.hitoko import HitokoAdapter
from core.config import settings
from core.http_client import close_async_client, init_async_client
from core.logging import setup_logging
from services.broker_client import BrokerClient, BrokerState
from services.dedup_service import DedupService
from services.hitoko_api import HitokoApiError, HitokoApiService
from services.relay_service import RelayService
from services.webhook_forwarder import WebhookForwarder

load_dotenv()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Hitoko Relay Worker")


async def _resolve_company_id() -> str:
    if not settings.hitoko_api_configured:
        return settings.company_id
    try:
        shop = await HitokoApiService().get_primary_shop()
    except (HitokoApiError, ValueError):
        logger.exception("Fetching Hitoko shop info failed, using configured company id")
        return settings.company_id
    if not shop:
        logger.warning("Hitoko returned no shops, using configured company id")
        return settings.company_id

    logger.info(
        "Hitoko shop info loaded",
        extra={
            "shop_name": shop.get("marketplaceShopName"),
            "shop_id": shop.get("marketplaceShopId"),
            "marketplace_code": shop.get("marketplaceCode"),
            "company_id": shop.get("companyId"),
        },
    )
    return str(shop.get("companyId") or settings.company_id)


def _on_broker_terminated(error: Exception) -> None:
    logger.critical(
        "Hitoko broker connection terminated, worker needs a restart",
        extra={"error": str(error)},
    )


@app.on_event("startup")
async def startup() -> None:
    shop_id, _ = settings.require_broker()
    init_async_client()

    relay_service = RelayService(
        adapter=HitokoAdapter(),
        forwarder=WebhookForwarder(settings.webhook_urls),
        dedup_service=DedupService(window_seconds=settings.dedup_window_seconds),
        shop_id=shop_id,
        marketplace_code=settings.marketplace_code,
    )
    broker = BrokerClient(
        topic=settings.shop_topic,
        processor=relay_service,
        on_event=relay_service.dispatch,
        on_terminated=_on_broker_terminated,
        company_id=await _resolve_company_id(),
    )
    app.state.relay_service = relay_service
    app.state.broker = broker
    broker.connect()
    logger.info(
        "Hitoko relay worker is running",
        extra={"subscribed_topic": broker.topic, "destinations": relay_service.forwarder.destinations},
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    # Stop ingesting first, then let in-flight forwards finish or time out.
    broker: BrokerClient = app.state.broker
    await broker.disconnect()

    relay_service: RelayService = app.state.relay_service
    await relay_service.drain(timeout=settings.drain_timeout_seconds)
    await close_async_client()
    logger.info("Hitoko relay worker stopped")


@app.get("/healthz")
def healthz():
    broker: BrokerClient = app.state.broker
    body = {
        "status": "ok",
        "broker": broker.state.value,
        "reconnectAttempts": broker.reconnect_attempts,
        "inFlightForwards": app.state.relay_service.in_flight,
    }
    if broker.state is BrokerState.DISCONNECTED and broker.terminal_error is not None:
        body["status"] = "terminated"
        body["error"] = str(broker.terminal_error)
        return JSONResponse(status_code=503, content=body)
    return body
