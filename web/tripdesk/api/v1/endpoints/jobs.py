"""Scheduled job endpoints, called by an external cron with ``X-Cron-Secret``."""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from tripdesk.deps import SessionDep, SenderDep
from tripdesk.security import require_cron_secret
from tripdesk.services import MaintenanceService, ReminderService, BroadcastService


logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_cron_secret)])

_NOT_CONFIGURED = {"skipped": True, "reason": "WhatsApp credentials not configured"}


def _job_failed(job: str) -> JSONResponse:
    logger.exception("Job %s failed", job)
    return JSONResponse(status_code=500, content={"error": f"{job} failed", "details": {}})


@router.post("/expire-abandoned-bookings")
async def expire_abandoned_bookings(sess: SessionDep):
    try:
        expired = await MaintenanceService(sess).expire_abandoned_bookings()
    except SQLAlchemyError:
        await sess.rollback()
        return _job_failed("expire-abandoned-bookings")
    return {"success": True, "expired": expired}


@router.post("/expire-wallet-credits")
async def expire_wallet_credits(sess: SessionDep):
    try:
        expired = await MaintenanceService(sess).expire_wallet_credits()
    except SQLAlchemyError:
        await sess.rollback()
        return _job_failed("expire-wallet-credits")
    return {"success": True, "expired": expired}


@router.post("/trip-reminders")
async def trip_reminders(sess: SessionDep, sender: SenderDep):
    if not sender.configured:
        return _NOT_CONFIGURED
    try:
        results = await ReminderService(sess, sender).send_trip_reminders()
    except SQLAlchemyError:
        await sess.rollback()
        return _job_failed("trip-reminders")
    return {"success": True, "results": results}


@router.post("/balance-reminders")
async def balance_reminders(sess: SessionDep, sender: SenderDep):
    if not sender.configured:
        return _NOT_CONFIGURED
    try:
        results = await ReminderService(sess, sender).send_balance_reminders()
    except SQLAlchemyError:
        await sess.rollback()
        return _job_failed("balance-reminders")
    return {"success": True, **results}


@router.post("/send-broadcasts")
async def send_broadcasts(sess: SessionDep, sender: SenderDep):
    if not sender.configured:
        return _NOT_CONFIGURED
    try:
        results = await BroadcastService(sess, sender).send_queued()
    except SQLAlchemyError:
        await sess.rollback()
        return _job_failed("send-broadcasts")
    return {"success": True, **results}
