import httpx
from typing import Optional, Tuple

from app.settings import settings
from app.email.templates import EmailMessage


def send_email_http(message: EmailMessage, timeout: Optional[float] = None) -> Tuple[bool, int, Optional[str]]:
    """
    POST one message to the Resend API.
    Returns (success, status_code, error); never raises. status_code is 0 on transport errors.
    """
    headers = {
        "Authorization": f"Bearer {settings.RESEND_API_KEY}",
        "Content-Type": "application/json",
    }
    body = {
        "from": settings.EMAIL_FROM,
        "to": message.to,
        "subject": message.subject,
        "html": message.html,
        "text": message.text,
    }
    try:
        with httpx.Client(timeout=timeout or settings.EMAIL_TIMEOUT_SEC) as client:
            resp = client.post(settings.RESEND_API_URL, json=body, headers=headers)
        if 200 <= resp.status_code < 300:
            return True, resp.status_code, None
        return False, resp.status_code, (resp.text or "")[:500]
    except httpx.HTTPError as e:
        return False, 0, f"{type(e).__name__}:{str(e)[:200]}"
