import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from adapters.hitoko import HitokoAdapter
from core.config import settings
from dependencies.services import get_hitoko_adapter
from schemas.events import ReplyContext
from schemas.reply import ImageReplyCreate, ReplyCreate, ReplyMessage, TextReplyCreate

router = APIRouter(prefix="/api", tags=["reply"])
logger = logging.getLogger(__name__)


def _require_fields(body) -> None:
    missing = [
        alias
        for alias, value in (
            ("sessionId", body.session_id),
            ("shopId", body.shop_id),
            ("buyerId", body.buyer_id),
        )
        if not value
    ]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")


async def _send(adapter: HitokoAdapter, body, reply: ReplyMessage, label: str) -> dict:
    context = ReplyContext(
        session_id=body.session_id,
        shop_id=body.shop_id,
        buyer_id=body.buyer_id,
        marketplace_code=body.marketplace_code or settings.marketplace_code,
    )
    try:
        result = await asyncio.to_thread(adapter.send_reply, context, reply)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    if not result.success:
        logger.error(
            "Reply to Hitoko failed",
            extra={"session_id": context.session_id, "status": result.status, "error": result.error},
        )
        raise HTTPException(status_code=result.status, detail=result.error or "Reply failed")

    return {"success": True, "message": f"{label} sent successfully", "data": result.data}


@router.post("/reply")
async def reply(
    body: ReplyCreate,
    adapter: HitokoAdapter = Depends(get_hitoko_adapter),
) -> dict:
    _require_fields(body)
    if not body.text and not body.img_url:
        raise HTTPException(status_code=400, detail="Message must contain either text or imgUrl")

    reply_message = ReplyMessage(
        text=body.text,
        img_url=body.img_url,
        width=body.width,
        height=body.height,
    )
    return await _send(adapter, body, reply_message, "Message")


@router.post("/reply/text")
async def reply_text(
    body: TextReplyCreate,
    adapter: HitokoAdapter = Depends(get_hitoko_adapter),
) -> dict:
    if not body.text:
        raise HTTPException(status_code=400, detail="Text is required")
    _require_fields(body)
    return await _send(adapter, body, ReplyMessage(text=body.text), "Text message")


@router.post("/reply/image")
async def reply_image(
    body: ImageReplyCreate,
    adapter: HitokoAdapter = Depends(get_hitoko_adapter),
) -> dict:
    if not body.img_url:
        raise HTTPException(status_code=400, detail="imgUrl is required")
    _require_fields(body)
    reply_message = ReplyMessage(img_url=body.img_url, width=body.width, height=body.height)
    return await _send(adapter, body, reply_message, "Image message")
