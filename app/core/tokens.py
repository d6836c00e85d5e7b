"""
Continuation Token Codec
------------------------
Stateless bearer tokens that let a user resume the intake across an email
round-trip without any server-side session storage.

Format:  base64url(json(payload)) "." base64url(HMAC-SHA256(json(payload), secret))
Payload: {"sub": <subject id>, "exp": <epoch ms>} plus optional extra claims.

Decoding never raises for expected failures; it returns a TokenResult tagged
with a TokenError. A token cannot be revoked early: rotating the secret is the
only way to invalidate outstanding links (and it invalidates all of them).

Verification-code tokens use the same codec. The legacy unsigned format
(base64 JSON, no HMAC) is only produced/accepted when explicitly requested and
must not be treated as tamper-proof.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from app.utils.time import Clock, now_ms

SEPARATOR = "."
_B64URL_RE = re.compile(r"[A-Za-z0-9_-]+")


class TokenError(str, Enum):
    MALFORMED = "malformed_token"
    SIGNATURE_MISMATCH = "signature_mismatch"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TokenResult:
    ok: bool
    subject_id: Optional[str] = None
    error: Optional[TokenError] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, subject_id: str, claims: Dict[str, Any]) -> "TokenResult":
        return cls(ok=True, subject_id=subject_id, claims=dict(claims))

    @classmethod
    def failure(cls, error: TokenError) -> "TokenResult":
        return cls(ok=False, error=error)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(segment: str) -> bytes:
    if not _B64URL_RE.fullmatch(segment):
        raise ValueError("not base64url")
    padded = segment + "=" * (-len(segment) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError) as e:
        raise ValueError("not base64url") from e


def _canonical_json(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")


def _sign(payload_bytes: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload_bytes, hashlib.sha256).digest()
    return _b64url_encode(digest)


def _require_secret(secret: str) -> None:
    if not secret:
        raise ValueError("A non-empty secret is required for signed tokens")


def _parse_claims(payload_bytes: bytes) -> Optional[Dict[str, Any]]:
    try:
        claims = json.loads(payload_bytes.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    if not isinstance(claims, dict):
        return None
    sub = claims.get("sub")
    exp = claims.get("exp")
    if not isinstance(sub, str) or not sub:
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return claims


def encode_claims(claims: Dict[str, Any], secret: str) -> str:
    """Sign an arbitrary claims dict (must already contain sub/exp)."""
    _require_secret(secret)
    payload_bytes = _canonical_json(claims)
    return f"{_b64url_encode(payload_bytes)}{SEPARATOR}{_sign(payload_bytes, secret)}"


def encode(subject_id: str, ttl: int, secret: str, *, now: Clock = now_ms,
           extra: Optional[Dict[str, Any]] = None) -> str:
    """Mint a continuation token for `subject_id` valid for `ttl` seconds from `now()`."""
    if not subject_id:
        raise ValueError("subject_id is required")
    claims: Dict[str, Any] = dict(extra or {})
    claims["sub"] = str(subject_id)
    claims["exp"] = int(now()) + int(ttl) * 1000
    return encode_claims(claims, secret)


def decode(token: str, secret: str, *, now: Clock = now_ms) -> TokenResult:
    """Verify `token` and return its subject id, or the reason it was rejected."""
    _require_secret(secret)
    if not isinstance(token, str):
        return TokenResult.failure(TokenError.MALFORMED)

    parts = token.split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return TokenResult.failure(TokenError.MALFORMED)
    payload_segment, signature_segment = parts
    if not _B64URL_RE.fullmatch(signature_segment):
        return TokenResult.failure(TokenError.MALFORMED)

    try:
        payload_bytes = _b64url_decode(payload_segment)
    except ValueError:
        return TokenResult.failure(TokenError.MALFORMED)

    expected = _sign(payload_bytes, secret)
    if not hmac.compare_digest(expected.encode("ascii"), signature_segment.encode("ascii")):
        return TokenResult.failure(TokenError.SIGNATURE_MISMATCH)

    claims = _parse_claims(payload_bytes)
    if claims is None:
        return TokenResult.failure(TokenError.MALFORMED)

    if claims["exp"] < now():
        return TokenResult.failure(TokenError.EXPIRED)

    return TokenResult.success(claims["sub"], claims)


def peek(token: str) -> Optional[Dict[str, Any]]:
    """
    Read claims WITHOUT verifying the signature.
    Client-side pre-check only (format/expiry hints); never use for authorization.
    """
    if not isinstance(token, str):
        return None
    segment = token.split(SEPARATOR)[0]
    if not segment:
        return None
    try:
        return _parse_claims(_b64url_decode(segment))
    except ValueError:
        return None


def looks_resumable(token: str, *, now: Clock = now_ms) -> bool:
    """Two segments, readable claims and not yet expired; the server still verifies."""
    if not token or len(token.split(SEPARATOR)) != 2:
        return False
    claims = peek(token)
    return bool(claims) and claims["exp"] >= now()


# ---------------------------------------------------------------------------
# Verification-code tokens
# ---------------------------------------------------------------------------
def _code_digest(email: str, code: str, secret: str) -> str:
    msg = f"{email.strip().lower()}:{code.strip()}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()[:32]


def encode_verification(email: str, code: str, ttl: int, secret: str, *,
                        now: Clock = now_ms, signed: bool = True) -> str:
    """
    Signed mode: the code itself never appears in the token, only a keyed digest.
    Unsigned mode: legacy base64(json({email, code, exp})) with no integrity at all.
    """
    if not signed:
        payload = {"email": email, "code": code, "exp": int(now()) + int(ttl) * 1000}
        return _b64url_encode(_canonical_json(payload))
    return encode(email, ttl, secret, now=now, extra={"cd": _code_digest(email, code, secret)})


def decode_verification(token: str, secret: str, *, now: Clock = now_ms, signed: bool = True) -> TokenResult:
    if signed:
        return decode(token, secret, now=now)

    if not isinstance(token, str) or not token or SEPARATOR in token:
        return TokenResult.failure(TokenError.MALFORMED)
    try:
        data = json.loads(_b64url_decode(token).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return TokenResult.failure(TokenError.MALFORMED)
    if not isinstance(data, dict) or not isinstance(data.get("email"), str) or "exp" not in data:
        return TokenResult.failure(TokenError.MALFORMED)
    exp = data.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return TokenResult.failure(TokenError.MALFORMED)
    if exp < now():
        return TokenResult.failure(TokenError.EXPIRED)
    return TokenResult.success(data["email"], {"sub": data["email"], "exp": exp, "code": data.get("code")})


def _claim_bytes(value: Any) -> bytes:
    # JSON escapes can smuggle lone surrogates into claims
    return str(value or "").encode("utf-8", "surrogatepass")


def code_matches(result: TokenResult, code: str, secret: str, *, signed: bool = True) -> bool:
    if not result.ok or not code:
        return False
    code = str(code).strip()
    if not (code.isascii() and code.isdigit()):
        return False
    if signed:
        expected = _code_digest(result.subject_id or "", code, secret)
        return hmac.compare_digest(expected.encode("ascii"), _claim_bytes(result.claims.get("cd")))
    return hmac.compare_digest(_claim_bytes(result.claims.get("code")), code.encode("ascii"))
