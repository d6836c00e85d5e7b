import base64

import pytest
from unittest.mock import MagicMock, patch

from app.api.schemas import (
    SendVerificationRequest,
    SubmitStep1Request,
    SubmitStep2Request,
    TranscribeRequest,
    VerifyCodeRequest,
    VerifyLinkRequest,
)
from app.core import intake, tokens
from app.core.copy import COPY
from app.core.errors import CollaboratorError, IntakeError, InvalidTokenError, ValidationError
from app.settings import settings
from app.store.models import LeadStep1, LeadStep2

SECRET = "unit-test-secret"


@pytest.fixture(autouse=True)
def configured():
    with patch.object(settings, "INTAKE_TOKEN_SECRET", SECRET), \
         patch.object(settings, "SITE_URL", "https://example.com"), \
         patch.object(settings, "VERIFICATION_TOKEN_MODE", "signed"):
        yield


@pytest.fixture
def repo():
    with patch("app.core.intake.lead_repo") as mock_repo:
        mock_repo.create_step1.side_effect = lambda lead: setattr(lead, "id", "lead-1") or lead
        mock_repo.create_step2.side_effect = lambda lead: setattr(lead, "id", "s2-1") or lead
        mock_repo.load_step1.return_value = LeadStep1(id="lead-1", email="a@b.co")
        yield mock_repo


@pytest.fixture
def mailer():
    with patch("app.core.intake.email_sender") as mock_sender:
        mock_sender.dispatch.return_value = "sent"
        yield mock_sender


@pytest.fixture(autouse=True)
def metrics():
    with patch("app.core.intake.metrics") as mock_metrics:
        yield mock_metrics


# ---------------------------------------------------------------------------
# Step 1
# ---------------------------------------------------------------------------
def test_submit_step1_persists_and_mails_resume_link(repo, mailer, metrics):
    res = intake.submit_step1(SubmitStep1Request(
        email=" a@b.co ",
        call_types=["Cancel something", "  "],
        utm_source="fb",
    ))

    assert res["ok"] is True
    assert res["id"] == "lead-1"
    assert tokens.decode(res["token"], SECRET).subject_id == "lead-1"

    lead = repo.create_step1.call_args.args[0]
    assert lead.email == "a@b.co"
    assert lead.callTypes == ["Cancel something"]
    assert lead.utmSource == "fb"
    metrics.increment_step1.assert_called_once()

    message = mailer.dispatch.call_args.args[0]
    assert message.kind == "continuation"
    assert message.step1Id == "lead-1"
    assert f"https://example.com/details?t={res['token']}" in message.text


def test_submit_step1_rejects_bad_email(repo, mailer):
    with pytest.raises(ValidationError) as e:
        intake.submit_step1(SubmitStep1Request(email="nope"))
    assert e.value.message == COPY["emailError"]
    repo.create_step1.assert_not_called()
    mailer.dispatch.assert_not_called()


def test_unencodable_email_is_rejected(repo, mailer):
    with pytest.raises(ValidationError):
        intake.submit_step1(SubmitStep1Request(email="a\ud800@b.co"))
    with pytest.raises(ValidationError):
        intake.send_verification(SendVerificationRequest(email="a\ud800@b.co"))
    mailer.dispatch.assert_not_called()


def test_submit_step1_persist_failure(repo, mailer):
    repo.create_step1.side_effect = ConnectionError("redis down")
    with pytest.raises(IntakeError) as e:
        intake.submit_step1(SubmitStep1Request(email="a@b.co"))
    assert e.value.status == 500
    assert e.value.message == "Failed to save data"
    mailer.dispatch.assert_not_called()


def test_email_failure_does_not_fail_step1(repo, mailer):
    mailer.dispatch.return_value = "failed"
    res = intake.submit_step1(SubmitStep1Request(email="a@b.co"))
    assert res["ok"] is True


def test_missing_secret_is_a_server_error(repo, mailer):
    with patch.object(settings, "INTAKE_TOKEN_SECRET", ""):
        with pytest.raises(IntakeError) as e:
            intake.submit_step1(SubmitStep1Request(email="a@b.co"))
    assert e.value.status == 500
    repo.create_step1.assert_not_called()


# ---------------------------------------------------------------------------
# Step 2
# ---------------------------------------------------------------------------
def _token(subject="lead-1", ttl=3600):
    return tokens.encode(subject, ttl, SECRET)


@pytest.mark.parametrize("body, message", [
    ({}, "Token is required"),
    ({"token": "x"}, "Company is required"),
    ({"token": "x", "company": "Acme"}, "Description is required"),
    ({"token": "x", "company": " ", "description_text": "d"}, "Company is required"),
])
def test_submit_step2_validation_order(repo, body, message):
    with pytest.raises(ValidationError) as e:
        intake.submit_step2(SubmitStep2Request(**body))
    assert e.value.message == message


def test_submit_step2_stores_details(repo, metrics):
    res = intake.submit_step2(SubmitStep2Request(
        token=_token(), company="Acme", description_text="Cancel my plan",
        audio_path="lead-1/1700000000000.webm", transcript_text="Cancel my plan",
    ))
    assert res == {"ok": True}
    lead = repo.create_step2.call_args.args[0]
    assert isinstance(lead, LeadStep2)
    assert lead.step1Id == "lead-1"
    assert lead.audioPath == "lead-1/1700000000000.webm"
    metrics.increment_step2.assert_called_once()


def test_submit_step2_drops_foreign_audio_path(repo):
    intake.submit_step2(SubmitStep2Request(
        token=_token(), company="Acme", description_text="d", audio_path="lead-2/1.webm",
    ))
    assert repo.create_step2.call_args.args[0].audioPath is None


@pytest.mark.parametrize("token, reason", [
    ("garbage", "malformed_token"),
    (tokens.encode("lead-1", 3600, "other-secret"), "signature_mismatch"),
    (tokens.encode("lead-1", -1, SECRET), "expired"),
])
def test_submit_step2_rejects_bad_tokens_generically(repo, metrics, token, reason):
    with pytest.raises(InvalidTokenError) as e:
        intake.submit_step2(SubmitStep2Request(token=token, company="Acme", description_text="d"))
    assert e.value.status == 401
    assert e.value.message == COPY["invalidLink"]
    assert e.value.reason == reason
    metrics.record_token_rejected.assert_called_once_with(reason)
    repo.create_step2.assert_not_called()


def test_submit_step2_unknown_intake(repo):
    repo.load_step1.return_value = None
    with pytest.raises(ValidationError) as e:
        intake.submit_step2(SubmitStep2Request(token=_token(), company="Acme", description_text="d"))
    assert e.value.message == "Invalid token - intake not found"


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------
def _audio_req(**overrides):
    body = {"token": _token(), "audio_base64": base64.b64encode(b"RIFF....").decode(), "audio_mime": "audio/webm"}
    body.update(overrides)
    return TranscribeRequest(**body)


@patch("app.core.intake.whisper_client.transcribe", return_value="hello there")
def test_transcribe_stores_audio_and_returns_text(mock_transcribe, repo, metrics):
    res = intake.transcribe(_audio_req())
    assert res["transcript_text"] == "hello there"
    assert res["audio_path"].startswith("lead-1/")
    assert res["audio_path"].endswith(".webm")
    repo.store_audio.assert_called_once()
    assert repo.store_audio.call_args.args[1] == b"RIFF...."
    metrics.record_transcription.assert_called_once_with(True)


@patch("app.core.intake.whisper_client.transcribe", side_effect=RuntimeError("whisper 500"))
def test_transcribe_failure_maps_to_user_message(mock_transcribe, repo, metrics):
    with pytest.raises(CollaboratorError) as e:
        intake.transcribe(_audio_req())
    assert e.value.user_message == COPY["transcriptionFailed"]
    metrics.record_transcription.assert_called_once_with(False)


def test_transcribe_requires_audio(repo):
    with pytest.raises(ValidationError):
        intake.transcribe(_audio_req(audio_base64=""))
    with pytest.raises(ValidationError):
        intake.transcribe(_audio_req(audio_base64="%%%not base64%%%"))


def test_transcribe_requires_valid_token(repo):
    with pytest.raises(InvalidTokenError):
        intake.transcribe(_audio_req(token="bad"))
    repo.store_audio.assert_not_called()


def test_transcribe_rejects_oversized_audio(repo):
    with patch.object(settings, "AUDIO_MAX_BYTES", 4):
        with pytest.raises(ValidationError):
            intake.transcribe(_audio_req())


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------
@patch("app.core.intake.secrets.randbelow", return_value=23456)
def test_send_verification_then_verify_code(mock_rand, mailer):
    res = intake.send_verification(SendVerificationRequest(email="a@b.co"))
    assert res["ok"] is True
    message = mailer.dispatch.call_args.args[0]
    assert message.kind == "verification"
    assert "123456" in message.text
    assert "123456" not in res["token"]

    assert intake.verify_code(VerifyCodeRequest(token=res["token"], code="123456")) == {"ok": True}
    with pytest.raises(ValidationError) as e:
        intake.verify_code(VerifyCodeRequest(token=res["token"], code="000000"))
    assert e.value.message == "Invalid code. Please try again."


def test_verify_code_requires_both_fields():
    with pytest.raises(ValidationError) as e:
        intake.verify_code(VerifyCodeRequest(token="x"))
    assert e.value.message == "Token and code are required"


def test_verify_code_expired_token(mailer):
    token = tokens.encode_verification("a@b.co", "123456", -1, SECRET)
    with pytest.raises(InvalidTokenError) as e:
        intake.verify_code(VerifyCodeRequest(token=token, code="123456"))
    assert e.value.message == intake.INVALID_CODE_LINK
    assert e.value.reason == "expired"


def test_verify_link_returns_email(mailer):
    res = intake.send_verification(SendVerificationRequest(email="a@b.co"))
    assert intake.verify_link(VerifyLinkRequest(token=res["token"])) == {"ok": True, "email": "a@b.co"}
    with pytest.raises(InvalidTokenError):
        intake.verify_link(VerifyLinkRequest(token=""))


def test_unsigned_mode_round_trip(mailer):
    with patch.object(settings, "VERIFICATION_TOKEN_MODE", "unsigned"):
        res = intake.send_verification(SendVerificationRequest(email="a@b.co"))
        assert "." not in res["token"]
        code = tokens.decode_verification(res["token"], "", signed=False).claims["code"]
        assert intake.verify_code(VerifyCodeRequest(token=res["token"], code=code)) == {"ok": True}


# ---------------------------------------------------------------------------
# Admin snapshot
# ---------------------------------------------------------------------------
def test_lead_snapshot(repo):
    repo.list_step2.return_value = [LeadStep2(id="s2", step1Id="lead-1", company="Acme")]
    snap = intake.lead_snapshot("lead-1")
    assert snap["step1"]["id"] == "lead-1"
    assert snap["step2"][0]["company"] == "Acme"

    repo.load_step1.return_value = None
    with pytest.raises(IntakeError) as e:
        intake.lead_snapshot("missing")
    assert e.value.status == 404
