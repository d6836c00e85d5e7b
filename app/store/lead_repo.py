import json
import inspect
import uuid
from dataclasses import asdict
from typing import List, Optional, Tuple, Type, TypeVar

from app.settings import settings
from app.store.redis_conn import get_redis
from app.store.models import LeadStep1, LeadStep2
from app.utils.time import now_ms, iso_from_ms

STEP1_PREFIX = "lead:step1:"
STEP2_PREFIX = "lead:step2:"
AUDIO_PREFIX = "audio:"
RECENT_KEY = "leads:recent"
RECENT_LIMIT = 200

T = TypeVar("T")


def _new_id() -> str:
    return str(uuid.uuid4())


def _step1_key(step1_id: str) -> str:
    return f"{STEP1_PREFIX}{step1_id}"


def _step2_key(step2_id: str) -> str:
    return f"{STEP2_PREFIX}{step2_id}"


def _step2_index_key(step1_id: str) -> str:
    return f"{STEP1_PREFIX}{step1_id}:step2"


def _filter_kwargs(cls: Type[T], data: dict) -> dict:
    """
    Drop unknown fields so cls(**kwargs) never explodes on older/newer records
    """
    allowed = set(inspect.signature(cls).parameters.keys())
    return {k: v for k, v in data.items() if k in allowed}


def _load(cls: Type[T], key: str) -> Optional[T]:
    r = get_redis()
    raw = r.get(key)
    if not raw:
        return None
    data = json.loads(raw)
    if not isinstance(data, dict):
        return None
    return cls(**_filter_kwargs(cls, data))


def create_step1(lead: LeadStep1) -> LeadStep1:
    lead.id = lead.id or _new_id()
    lead.createdAt = lead.createdAt or iso_from_ms(now_ms())
    r = get_redis()
    r.set(_step1_key(lead.id), json.dumps(asdict(lead)))
    r.lpush(RECENT_KEY, lead.id)
    r.ltrim(RECENT_KEY, 0, RECENT_LIMIT - 1)
    return lead


def load_step1(step1_id: str) -> Optional[LeadStep1]:
    if not step1_id:
        return None
    return _load(LeadStep1, _step1_key(step1_id))


def save_step1(lead: LeadStep1) -> None:
    r = get_redis()
    r.set(_step1_key(lead.id), json.dumps(asdict(lead)))


def set_email_status(step1_id: str, status: str) -> None:
    lead = load_step1(step1_id)
    if lead is None:
        return
    lead.emailStatus = status
    save_step1(lead)


def create_step2(lead: LeadStep2) -> LeadStep2:
    lead.id = lead.id or _new_id()
    lead.createdAt = lead.createdAt or iso_from_ms(now_ms())
    r = get_redis()
    r.set(_step2_key(lead.id), json.dumps(asdict(lead)))
    r.rpush(_step2_index_key(lead.step1Id), lead.id)
    return lead


def list_step2(step1_id: str) -> List[LeadStep2]:
    r = get_redis()
    ids = r.lrange(_step2_index_key(step1_id), 0, -1) or []
    out: List[LeadStep2] = []
    for sid in ids:
        rec = _load(LeadStep2, _step2_key(sid))
        if rec is not None:
            out.append(rec)
    return out


def recent_step1_ids(limit: int = 20) -> List[str]:
    r = get_redis()
    return list(r.lrange(RECENT_KEY, 0, max(0, int(limit) - 1)) or [])


def store_audio(path: str, data: bytes, content_type: str) -> None:
    """Store a voice recording; `path` is the caller-visible storage path. Never overwrites."""
    r = get_redis(binary=True)
    ttl_sec = int(settings.AUDIO_TTL_DAYS) * 24 * 3600
    created = r.set(f"{AUDIO_PREFIX}{path}", data, nx=True, ex=ttl_sec or None)
    if not created:
        raise RuntimeError(f"Audio object already exists: {path}")
    r.set(f"{AUDIO_PREFIX}{path}:type", content_type.encode("utf-8"), ex=ttl_sec or None)


def load_audio(path: str) -> Optional[Tuple[bytes, str]]:
    """Recording bytes and their content type, or None once the TTL has lapsed."""
    r = get_redis(binary=True)
    data = r.get(f"{AUDIO_PREFIX}{path}")
    if data is None:
        return None
    content_type = r.get(f"{AUDIO_PREFIX}{path}:type")
    return data, (content_type.decode("utf-8") if content_type else "application/octet-stream")
