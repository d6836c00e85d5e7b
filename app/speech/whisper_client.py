import time
import random
import httpx

from app.settings import settings

# mime -> file extension understood by the transcription API
MIME_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/mp4": "mp4",
    "audio/mpeg": "mp3",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
}
DEFAULT_EXTENSION = "webm"


def extension_for(mime: str) -> str:
    base = (mime or "").split(";")[0].strip().lower()
    return MIME_EXTENSIONS.get(base, DEFAULT_EXTENSION)


def _headers() -> dict:
    return {"Authorization": f"Bearer {settings.OPENAI_API_KEY}"}


def transcribe(audio: bytes, mime: str) -> str:
    """Call the Whisper transcription endpoint.

    POST {WHISPER_API_URL} (multipart: file, model, language)
    Timeouts and 5xx are retried with a short jittered backoff; 4xx fail fast.
    """
    if not settings.OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY is not set")

    ext = extension_for(mime)
    files = {"file": (f"audio.{ext}", audio, (mime or "audio/webm").split(";")[0])}
    data = {"model": settings.WHISPER_MODEL, "language": settings.TRANSCRIBE_LANGUAGE}

    attempt = 0
    last_err = None
    max_attempts = 1 + max(0, int(settings.TRANSCRIBE_MAX_RETRIES))
    start = time.time()
    while attempt < max_attempts:
        attempt += 1
        try:
            with httpx.Client(timeout=settings.TRANSCRIBE_TIMEOUT_SEC) as client:
                resp = client.post(settings.WHISPER_API_URL, headers=_headers(), files=files, data=data)
            if 400 <= resp.status_code < 500:
                raise RuntimeError(f"Transcription rejected: {resp.status_code} {(resp.text or '')[:200]}")
            resp.raise_for_status()
            return (resp.json() or {}).get("text") or ""
        except (httpx.TimeoutException, httpx.TransportError, httpx.HTTPStatusError) as e:
            last_err = e
            if attempt >= max_attempts:
                break
            time.sleep(0.2 + random.uniform(0.0, 0.1))
    elapsed = round(time.time() - start, 3)
    raise RuntimeError(f"Transcription failed (attempts={attempt}, elapsed={elapsed}s): {last_err}")
