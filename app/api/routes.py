from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from app.api.auth import require_api_key
from app.api.schemas import (
    ErrorResponse,
    OkResponse,
    SendVerificationRequest,
    SendVerificationResponse,
    SubmitStep1Request,
    SubmitStep1Response,
    SubmitStep2Request,
    TranscribeRequest,
    TranscribeResponse,
    VerifyCodeRequest,
    VerifyLinkRequest,
    VerifyLinkResponse,
)
from app.core import intake

# Blocking work (Redis, outbound HTTP) runs in the threadpool
router = APIRouter(
    prefix="/api",
    dependencies=[Depends(require_api_key)],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@router.post("/submit-step1", response_model=SubmitStep1Response)
async def submit_step1(req: SubmitStep1Request):
    return await run_in_threadpool(intake.submit_step1, req)


@router.post("/submit-step2", response_model=OkResponse)
async def submit_step2(req: SubmitStep2Request):
    return await run_in_threadpool(intake.submit_step2, req)


@router.post("/transcribe-audio", response_model=TranscribeResponse)
async def transcribe_audio(req: TranscribeRequest):
    return await run_in_threadpool(intake.transcribe, req)


@router.post("/send-verification", response_model=SendVerificationResponse)
async def send_verification(req: SendVerificationRequest):
    return await run_in_threadpool(intake.send_verification, req)


@router.post("/verify-code", response_model=OkResponse)
async def verify_code(req: VerifyCodeRequest):
    return await run_in_threadpool(intake.verify_code, req)


@router.post("/verify-link", response_model=VerifyLinkResponse)
async def verify_link(req: VerifyLinkRequest):
    return await run_in_threadpool(intake.verify_link, req)
