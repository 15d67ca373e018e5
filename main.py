import logging
import time
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from core.config import settings
from core.http_client import close_async_client, init_async_client
from core.logging import setup_logging
from endpoints.reply import router as reply_router
from endpoints.shops import router as shops_router

load_dotenv()
setup_logging(settings.log_level)
app = FastAPI(title="Hitoko Reply Server")

app.include_router(reply_router)
app.include_router(shops_router)

http_logger = logging.getLogger("http.request")

@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration = time.perf_counter() - start
        http_request = {
            "requestMethod": request.method,
            "requestUrl": str(request.url),
            "status": status,
            "userAgent": request.headers.get("user-agent"),
            "remoteIp": request.client.host if request.client else None,
            "latency": f"{duration:.6f}s",
        }
        http_logger.info("HTTP request", extra={"httpRequest": http_request})

@app.on_event("startup")
async def startup() -> None:
    init_async_client()

@app.on_event("shutdown")
async def shutdown() -> None:
    await close_async_client()

@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
