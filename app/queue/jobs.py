import inspect

from app.email.sender import deliver, FAILED
from app.email.templates import EmailMessage
from app.observability.logging import log


def send_email_job(message: dict):
    """
    Background job: deliver one transactional email.
    Raises on failure so RQ's Retry policy schedules the next attempt.
    """
    allowed = set(inspect.signature(EmailMessage).parameters.keys())
    msg = EmailMessage(**{k: v for k, v in (message or {}).items() if k in allowed})

    log(event="email_job_start", kind=msg.kind, step1Id=msg.step1Id or "")
    status = deliver(msg)
    if status == FAILED:
        raise RuntimeError(f"Email delivery failed (kind={msg.kind})")
    return status
