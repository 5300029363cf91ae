import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.services.email import record_delivery_event, verify_webhook

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/resend-webhook")
async def email_delivery_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    body = await request.body()
    if not verify_webhook(body, dict(request.headers)):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid event")

    log = await record_delivery_event(db, event)
    return {"received": True, "matched": log is not None}
