# crosspost/routers/webhook_router.py
import secrets

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from crosspost import config

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/meta")
async def verify_meta_subscription(
    mode: str = Query(None, alias="hub.mode"),
    verify_token: str = Query(None, alias="hub.verify_token"),
    challenge: str = Query(None, alias="hub.challenge"),
):
    """Subscription handshake: echo the challenge when the verify token matches."""
    expected = config.META_WEBHOOK_VERIFY_TOKEN
    if (
        mode == "subscribe"
        and verify_token
        and challenge
        and expected
        and secrets.compare_digest(verify_token, expected)
    ):
        logger.info("meta_webhook_verified")
        return PlainTextResponse(challenge)
    logger.warning("meta_webhook_verification_failed", mode=mode)
    return JSONResponse({"error": "Verification failed"}, status_code=403)


@router.post("/meta")
async def receive_meta_event(request: Request):
    # events are acknowledged only; nothing consumes them yet
    try:
        body = await request.json()
    except ValueError:
        body = None
    entries = body.get("entry") if isinstance(body, dict) else None
    logger.info(
        "meta_webhook_received",
        object=body.get("object") if isinstance(body, dict) else None,
        entries=len(entries) if isinstance(entries, list) else 0,
    )
    return {"received": True}
