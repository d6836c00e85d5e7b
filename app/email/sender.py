"""
Transactional Email Dispatch
----------------------------
Email never gates data durability: the submission is already persisted when we
get here, so every failure is logged and reflected in the lead's emailStatus
but never raised to the request.

Modes (settings.EMAIL_MODE):
- "sync": send inline only
- "rq": queue only
- "hybrid": send inline, queue as backup on failure
"""
from __future__ import annotations

import time
from dataclasses import asdict

from rq import Retry

from app.settings import settings
from app.email.client import send_email_http
from app.email.templates import EmailMessage
from app.observability.logging import log
import app.observability.metrics as metrics
import app.store.lead_repo as lead_repo

SENT = "sent"
LOGGED = "logged"
QUEUED = "queued"
FAILED = "failed"


def _mark(message: EmailMessage, status: str) -> None:
    if not message.step1Id:
        return
    try:
        lead_repo.set_email_status(message.step1Id, status)
    except Exception as e:
        log(event="email_status_update_failed", step1Id=message.step1Id, errorType=type(e).__name__)


def deliver(message: EmailMessage) -> str:
    """Send one message now. Returns SENT, LOGGED (no provider configured) or FAILED."""
    if not settings.RESEND_API_KEY:
        # Development mode only: the preview carries the live link and is redacted with the other PII
        log(event="email_dev_mode", kind=message.kind, email=message.to, devPreview=message.text)
        metrics.record_email(LOGGED)
        _mark(message, LOGGED)
        return LOGGED

    start = time.time()
    ok, status_code, error = send_email_http(message)
    elapsed_ms = int((time.time() - start) * 1000)

    if ok:
        metrics.record_email(SENT)
        metrics.record_email_latency(elapsed_ms)
        log(event="email_sent", kind=message.kind, step1Id=message.step1Id or "",
            statusCode=int(status_code), elapsedMs=elapsed_ms)
        _mark(message, SENT)
        return SENT

    metrics.record_email(FAILED)
    log(event="email_send_failed", kind=message.kind, step1Id=message.step1Id or "",
        statusCode=int(status_code), elapsedMs=elapsed_ms, error=str(error or "")[:300])
    _mark(message, FAILED)
    return FAILED


def dispatch(message: EmailMessage) -> str:
    mode = (settings.EMAIL_MODE or "hybrid").lower()

    if mode in ("sync", "hybrid"):
        try:
            status = deliver(message)
        except Exception as e:
            log(event="email_deliver_exception", kind=message.kind, errorType=type(e).__name__, error=str(e)[:300])
            status = FAILED
        if status != FAILED or mode == "sync":
            return status

    if mode in ("rq", "hybrid"):
        # Lazy import: jobs -> sender
        from app.queue.jobs import send_email_job
        from app.queue.rq_conn import get_queue
        try:
            q = get_queue()
            job = q.enqueue(
                send_email_job,
                asdict(message),
                retry=Retry(max=int(settings.EMAIL_JOB_RETRIES), interval=[10, 60, 300]),
            )
            log(event="email_enqueued", kind=message.kind, step1Id=message.step1Id or "",
                rq_job_id=getattr(job, "id", "") or "", mode=mode)
            metrics.record_email(QUEUED)
            _mark(message, QUEUED)
            return QUEUED
        except Exception as e:
            log(event="email_enqueue_failed", kind=message.kind, errorType=type(e).__name__, error=str(e)[:300])
            _mark(message, FAILED)
            return FAILED

    log(event="email_mode_unknown", mode=mode)
    return FAILED
