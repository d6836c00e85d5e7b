import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "email")

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Continuation tokens (signed, stateless). Rotating the secret invalidates every outstanding link.
    INTAKE_TOKEN_SECRET: str = os.getenv("INTAKE_TOKEN_SECRET", "")
    CONTINUATION_TTL_SEC: int = int(os.getenv("CONTINUATION_TTL_SEC", str(7 * 24 * 3600)))

    # Email verification codes
    VERIFICATION_TTL_SEC: int = int(os.getenv("VERIFICATION_TTL_SEC", "600"))
    # "signed" (default) or "unsigned" (legacy base64 payload, no HMAC)
    VERIFICATION_TOKEN_MODE: str = os.getenv("VERIFICATION_TOKEN_MODE", "signed").lower()

    # Public links embedded in emails
    SITE_URL: str = os.getenv("SITE_URL", "http://localhost:5173").rstrip("/")
    RESUME_PATH: str = os.getenv("RESUME_PATH", "/details")
    VERIFY_PATH: str = os.getenv("VERIFY_PATH", "/verify")

    # Email delivery
    # Modes:
    # - "sync": send inline only
    # - "rq": queue only
    # - "hybrid": try inline first, queue as backup
    EMAIL_MODE: str = os.getenv("EMAIL_MODE", "hybrid").lower()
    EMAIL_TIMEOUT_SEC: float = float(os.getenv("EMAIL_TIMEOUT_SEC", "5"))
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "OneCalla <noreply@onecalla.com>")
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
    RESEND_API_URL: str = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    EMAIL_JOB_RETRIES: int = int(os.getenv("EMAIL_JOB_RETRIES", "3"))

    # Speech-to-text
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    WHISPER_API_URL: str = os.getenv("WHISPER_API_URL", "https://api.openai.com/v1/audio/transcriptions")
    WHISPER_MODEL: str = os.getenv("WHISPER_MODEL", "whisper-1")
    TRANSCRIBE_LANGUAGE: str = os.getenv("TRANSCRIBE_LANGUAGE", "en")
    TRANSCRIBE_TIMEOUT_SEC: float = float(os.getenv("TRANSCRIBE_TIMEOUT_SEC", "30"))
    TRANSCRIBE_MAX_RETRIES: int = int(os.getenv("TRANSCRIBE_MAX_RETRIES", "2"))
    AUDIO_TTL_DAYS: int = int(os.getenv("AUDIO_TTL_DAYS", "30"))
    AUDIO_MAX_BYTES: int = int(os.getenv("AUDIO_MAX_BYTES", str(25 * 1024 * 1024)))

    # Security & Privacy
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
