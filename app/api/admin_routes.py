from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from app.api.auth import require_admin
from app.core import intake
from app.store import lead_repo
import app.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/leads")
def get_recent_leads(limit: int = 20, _=Depends(require_admin)):
    """Most recent Step 1 ids, newest first."""
    return {"ids": lead_repo.recent_step1_ids(limit)}


@router.get("/leads/{step1_id}")
def get_lead(step1_id: str, _=Depends(require_admin)):
    """Step 1 record with every Step 2 submitted against it."""
    return intake.lead_snapshot(step1_id)


@router.get("/audio/{audio_path:path}")
def get_audio(audio_path: str, _=Depends(require_admin)):
    found = lead_repo.load_audio(audio_path)
    if found is None:
        raise HTTPException(status_code=404, detail="Audio not found")
    data, content_type = found
    return Response(content=data, media_type=content_type)


@router.get("/metrics")
def get_metrics(_=Depends(require_admin)):
    return metrics.get_intake_snapshot()
