from typing import List, Literal, Optional
from pydantic import BaseModel


class SubmitStep1Request(BaseModel):
    email: Optional[str] = None
    call_types: Optional[List[str]] = None
    avoided_call_text: Optional[str] = None
    other_text: Optional[str] = None
    company: Optional[str] = None
    description_text: Optional[str] = None
    utm_source: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_adset: Optional[str] = None
    utm_ad: Optional[str] = None

class SubmitStep1Response(BaseModel):
    ok: bool = True
    id: str
    token: str

class SubmitStep2Request(BaseModel):
    token: Optional[str] = None
    company: Optional[str] = None
    description_text: Optional[str] = None
    audio_path: Optional[str] = None
    transcript_text: Optional[str] = None
    phone: Optional[str] = None

class TranscribeRequest(BaseModel):
    # The continuation token authorizes the upload (no cookies, no session)
    token: Optional[str] = None
    audio_base64: Optional[str] = None
    audio_mime: Optional[str] = None

class TranscribeResponse(BaseModel):
    transcript_text: str
    audio_path: str

class SendVerificationRequest(BaseModel):
    email: Optional[str] = None

class SendVerificationResponse(BaseModel):
    ok: bool = True
    token: str

class VerifyCodeRequest(BaseModel):
    token: Optional[str] = None
    code: Optional[str] = None

class VerifyLinkRequest(BaseModel):
    token: Optional[str] = None

class VerifyLinkResponse(BaseModel):
    ok: bool = True
    email: str

class OkResponse(BaseModel):
    ok: bool = True

class ErrorResponse(BaseModel):
    error: str

class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"] = "ok"
