"""
Intake Service (server side)
----------------------------
Step 1 persists the lead and mints a continuation token that is mailed as a
resume link. Step 2 (and audio transcription) are authorized solely by that
token: no cookies, no server session.

Token failures always surface the same generic message; the specific reason
(malformed / signature mismatch / expired) only goes to logs and metrics.
"""
from __future__ import annotations

import base64
import binascii
import secrets
from urllib.parse import urlencode

from app.settings import settings
from app.api.schemas import (
    SendVerificationRequest,
    SubmitStep1Request,
    SubmitStep2Request,
    TranscribeRequest,
    VerifyCodeRequest,
    VerifyLinkRequest,
)
from app.core import tokens
from app.core.copy import COPY
from app.core.errors import CollaboratorError, IntakeError, InvalidTokenError, ValidationError
from app.core.flow import EMAIL_RE
from app.email import sender as email_sender
from app.email.templates import continuation_email, verification_email
from app.observability.logging import log
import app.observability.metrics as metrics
from app.speech import whisper_client
from app.store import lead_repo
from app.store.models import LeadStep1, LeadStep2
from app.utils.time import now_ms

INVALID_CODE_LINK = "This code is invalid or has expired. Please request a new one."


def _secret() -> str:
    secret = settings.INTAKE_TOKEN_SECRET
    if not secret:
        log(event="token_secret_missing")
        raise IntakeError("Service is not configured. Please try again later.", status=500)
    return secret


def _verification_signed() -> bool:
    return (settings.VERIFICATION_TOKEN_MODE or "signed") != "unsigned"


def _clean(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _valid_email(email: str) -> bool:
    # isprintable() also rejects lone surrogates, which cannot be encoded
    return bool(email) and email.isprintable() and bool(EMAIL_RE.match(email))


def _optional(value):
    v = _clean(value)
    return v or None


def continuation_link(token: str) -> str:
    return f"{settings.SITE_URL}{settings.RESUME_PATH}?{urlencode({'t': token})}"


def verification_link(token: str) -> str:
    return f"{settings.SITE_URL}{settings.VERIFY_PATH}?{urlencode({'token': token})}"


def verify_continuation(token: str, route: str) -> str:
    """Return the Step 1 id bound to `token`, or raise InvalidTokenError."""
    result = tokens.decode(token, _secret())
    if not result.ok:
        reason = result.error.value if result.error else "unknown"
        metrics.record_token_rejected(reason)
        log(event="token_rejected", route=route, reason=reason)
        raise InvalidTokenError(reason)
    return result.subject_id


def submit_step1(req: SubmitStep1Request) -> dict:
    email = _clean(req.email)
    if not _valid_email(email):
        raise ValidationError(COPY["emailError"])

    # Resolve config before writing so a misconfigured deploy doesn't store orphans
    secret = _secret()

    lead = LeadStep1(
        email=email,
        callTypes=[c.strip() for c in (req.call_types or []) if isinstance(c, str) and c.strip()],
        avoidedCallText=_optional(req.avoided_call_text),
        otherText=_optional(req.other_text),
        company=_optional(req.company),
        descriptionText=_optional(req.description_text),
        utmSource=_optional(req.utm_source),
        utmCampaign=_optional(req.utm_campaign),
        utmAdset=_optional(req.utm_adset),
        utmAd=_optional(req.utm_ad),
    )
    try:
        lead_repo.create_step1(lead)
    except Exception as e:
        log(event="step1_persist_failed", errorType=type(e).__name__, error=str(e)[:300])
        raise IntakeError("Failed to save data", status=500)
    metrics.increment_step1()

    token = tokens.encode(lead.id, settings.CONTINUATION_TTL_SEC, secret)
    status = email_sender.dispatch(continuation_email(email, continuation_link(token), step1_id=lead.id))

    log(
        event="step1_submitted",
        step1Id=lead.id,
        callTypes=len(lead.callTypes),
        hasCompany=bool(lead.company),
        utmSource=lead.utmSource or "",
        utmCampaign=lead.utmCampaign or "",
        emailStatus=status,
    )
    return {"ok": True, "id": lead.id, "token": token}


def submit_step2(req: SubmitStep2Request) -> dict:
    token = _clean(req.token)
    if not token:
        raise ValidationError("Token is required")
    company = _clean(req.company)
    if not company:
        raise ValidationError("Company is required")
    description = _clean(req.description_text)
    if not description:
        raise ValidationError("Description is required")

    step1_id = verify_continuation(token, route="submit-step2")

    step1 = lead_repo.load_step1(step1_id)
    if step1 is None:
        log(event="step2_intake_not_found", step1Id=step1_id)
        raise ValidationError("Invalid token - intake not found")

    audio_path = _optional(req.audio_path)
    if audio_path and not audio_path.startswith(f"{step1_id}/"):
        # Recordings are namespaced by Step 1 id; never link someone else's upload
        log(event="step2_foreign_audio_path_dropped", step1Id=step1_id)
        audio_path = None

    lead = LeadStep2(
        step1Id=step1_id,
        company=company,
        descriptionText=description,
        audioPath=audio_path,
        transcriptText=_optional(req.transcript_text),
        phone=_optional(req.phone),
    )
    try:
        lead_repo.create_step2(lead)
    except Exception as e:
        log(event="step2_persist_failed", step1Id=step1_id, errorType=type(e).__name__, error=str(e)[:300])
        raise IntakeError("Failed to save data", status=500)
    metrics.increment_step2()

    log(event="step2_submitted", step1Id=step1_id, step2Id=lead.id, hasAudio=bool(audio_path))
    return {"ok": True}


def transcribe(req: TranscribeRequest) -> dict:
    token = _clean(req.token)
    if not token:
        raise ValidationError("Token is required")
    audio_b64 = _clean(req.audio_base64)
    mime = _clean(req.audio_mime)
    if not audio_b64 or not mime:
        raise ValidationError("audio_base64 and audio_mime are required")

    step1_id = verify_continuation(token, route="transcribe-audio")

    try:
        audio = base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Audio could not be decoded")
    if not audio:
        raise ValidationError("audio_base64 and audio_mime are required")
    if len(audio) > int(settings.AUDIO_MAX_BYTES):
        raise ValidationError("Recording is too long. Please keep it under a few minutes.")

    if lead_repo.load_step1(step1_id) is None:
        raise ValidationError("Invalid token - intake not found")

    path = f"{step1_id}/{now_ms()}.{whisper_client.extension_for(mime)}"
    try:
        lead_repo.store_audio(path, audio, mime)
    except Exception as e:
        log(event="audio_store_failed", step1Id=step1_id, errorType=type(e).__name__, error=str(e)[:300])
        metrics.record_transcription(False)
        raise CollaboratorError(COPY["transcriptionFailed"])

    try:
        text = whisper_client.transcribe(audio, mime)
    except Exception as e:
        log(event="transcription_failed", step1Id=step1_id, errorType=type(e).__name__, error=str(e)[:300])
        metrics.record_transcription(False)
        raise CollaboratorError(COPY["transcriptionFailed"])

    metrics.record_transcription(True)
    log(event="transcription_ok", step1Id=step1_id, bytes=len(audio), chars=len(text))
    return {"transcript_text": text, "audio_path": path}


def send_verification(req: SendVerificationRequest) -> dict:
    email = _clean(req.email)
    if not _valid_email(email):
        raise ValidationError(COPY["emailError"])

    signed = _verification_signed()
    secret = _secret() if signed else settings.INTAKE_TOKEN_SECRET
    code = str(100000 + secrets.randbelow(900000))
    token = tokens.encode_verification(email, code, settings.VERIFICATION_TTL_SEC, secret, signed=signed)

    status = email_sender.dispatch(verification_email(email, verification_link(token), code))
    metrics.record_verification("sent")
    log(event="verification_sent", signed=signed, emailStatus=status)
    return {"ok": True, "token": token}


def _decode_verification(token: str, route: str) -> tokens.TokenResult:
    signed = _verification_signed()
    secret = _secret() if signed else settings.INTAKE_TOKEN_SECRET
    result = tokens.decode_verification(token, secret, signed=signed)
    if not result.ok:
        reason = result.error.value if result.error else "unknown"
        metrics.record_token_rejected(reason)
        metrics.record_verification("failed")
        log(event="verification_token_rejected", route=route, reason=reason)
        raise InvalidTokenError(reason, message=INVALID_CODE_LINK)
    return result


def verify_code(req: VerifyCodeRequest) -> dict:
    token = _clean(req.token)
    code = _clean(req.code)
    if not token or not code:
        raise ValidationError("Token and code are required")

    result = _decode_verification(token, route="verify-code")
    signed = _verification_signed()
    secret = settings.INTAKE_TOKEN_SECRET
    if not tokens.code_matches(result, code, secret, signed=signed):
        metrics.record_verification("failed")
        log(event="verification_code_mismatch")
        raise ValidationError("Invalid code. Please try again.")

    metrics.record_verification("ok")
    log(event="verification_ok")
    return {"ok": True}


def verify_link(req: VerifyLinkRequest) -> dict:
    token = _clean(req.token)
    if not token:
        raise InvalidTokenError("missing", message=INVALID_CODE_LINK)
    result = _decode_verification(token, route="verify-link")
    metrics.record_verification("ok")
    log(event="verification_link_ok")
    return {"ok": True, "email": result.subject_id}


def lead_snapshot(step1_id: str) -> dict:
    step1 = lead_repo.load_step1(step1_id)
    if step1 is None:
        raise IntakeError("Lead not found", status=404)
    return {
        "step1": step1.__dict__.copy(),
        "step2": [s.__dict__.copy() for s in lead_repo.list_step2(step1_id)],
    }
