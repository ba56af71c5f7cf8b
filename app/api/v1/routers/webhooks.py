import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import WebhookPayloadError
from app.core.limiter import limiter
from app.core.settings import settings
from app.core.signature import SIGNATURE_HEADER, verify_webhook_signature
from app.db.session import get_db
from app.schemas.payments import WebhookAck
from app.services import admin_cache, reconciliation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/paystack", tags=["webhooks"])


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Receive and reconcile Paystack events",
)
@limiter.exempt
async def paystack_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> WebhookAck:
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("Webhook rejected: missing signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No signature provided")
    if not verify_webhook_signature(raw_body, signature, settings.paystack_secret_key):
        logger.warning("Webhook rejected: invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body is not valid JSON") from exc

    try:
        result = await reconciliation.handle_event(db, payload)
        await db.commit()
    except WebhookPayloadError as exc:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception:
        await db.rollback()
        logger.exception("Webhook processing failed; provider will retry")
        raise

    if result.admin_view_changed:
        await admin_cache.invalidate()
    return WebhookAck(success=True)
