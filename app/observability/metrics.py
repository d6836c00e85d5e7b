"""
Intake Metrics
--------------
Lightweight Redis counters plus one snapshot function consumed by
/admin/metrics. Writes are best-effort: a Redis hiccup must never fail an
intake request, so errors are logged and dropped.
"""
from __future__ import annotations
import time
from typing import List
from app.store.redis_conn import get_redis
from app.observability.logging import log

K_STEP1 = "metrics:step1:submitted"
K_STEP2 = "metrics:step2:submitted"
K_TOKEN_REJECTED = "metrics:token:rejected:"       # + reason
K_EMAIL = "metrics:email:"                         # + sent/failed/queued/logged
K_EMAIL_LAT = "metrics:email:latencies"            # LPUSH ms
K_TRANSCRIBE = "metrics:transcribe:"               # + ok/failed
K_VERIFY = "metrics:verify:"                       # + sent/ok/failed

TOKEN_REASONS = ("malformed_token", "signature_mismatch", "expired")
EMAIL_OUTCOMES = ("sent", "failed", "queued", "logged")

_MAX_SAMPLES = 500


def _incr(key: str) -> None:
    try:
        get_redis().incr(key, 1)
    except Exception as e:
        log(event="metrics_write_failed", key=key, errorType=type(e).__name__)


def increment_step1() -> None:
    _incr(K_STEP1)

def increment_step2() -> None:
    _incr(K_STEP2)

def record_token_rejected(reason: str) -> None:
    _incr(f"{K_TOKEN_REJECTED}{reason}")

def record_email(outcome: str) -> None:
    _incr(f"{K_EMAIL}{outcome}")

def record_transcription(ok: bool) -> None:
    _incr(f"{K_TRANSCRIBE}{'ok' if ok else 'failed'}")

def record_verification(outcome: str) -> None:
    _incr(f"{K_VERIFY}{outcome}")

def record_email_latency(ms: int) -> None:
    try:
        ms = int(ms)
    except Exception:
        return
    try:
        r = get_redis()
        r.lpush(K_EMAIL_LAT, ms)
        r.ltrim(K_EMAIL_LAT, 0, _MAX_SAMPLES - 1)
    except Exception as e:
        log(event="metrics_write_failed", key=K_EMAIL_LAT, errorType=type(e).__name__)


def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])


def _int(r, key: str) -> int:
    try:
        return int(r.get(key) or 0)
    except (TypeError, ValueError):
        return 0


def get_intake_snapshot() -> dict:
    r = get_redis()
    lat: List[float] = []
    for x in r.lrange(K_EMAIL_LAT, 0, _MAX_SAMPLES - 1) or []:
        try:
            lat.append(float(x))
        except (TypeError, ValueError):
            continue

    sent = _int(r, f"{K_EMAIL}sent")
    failed = _int(r, f"{K_EMAIL}failed")
    attempts = sent + failed
    return {
        "step1_submitted": _int(r, K_STEP1),
        "step2_submitted": _int(r, K_STEP2),
        "token_rejected": {reason: _int(r, f"{K_TOKEN_REJECTED}{reason}") for reason in TOKEN_REASONS},
        "email": {outcome: _int(r, f"{K_EMAIL}{outcome}") for outcome in EMAIL_OUTCOMES},
        "email_delivery_success_rate": round((sent / attempts) * 100.0, 3) if attempts else 0.0,
        "p95_email_latency_ms": _percentile(lat, 0.95),
        "transcription": {"ok": _int(r, f"{K_TRANSCRIBE}ok"), "failed": _int(r, f"{K_TRANSCRIBE}failed")},
        "verification": {k: _int(r, f"{K_VERIFY}{k}") for k in ("sent", "ok", "failed")},
        "snapshot_at": int(time.time()),
    }
