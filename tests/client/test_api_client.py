import json

import httpx
import pytest

from app.client.api import IntakeApiClient, details_submitter, intake_submitter, quick_submitter
from app.core.errors import CollaboratorError
from app.core.flow import Draft


def _client(handler, **kwargs):
    return IntakeApiClient("http://api.test/", transport=httpx.MockTransport(handler), **kwargs)


def test_submit_step1_body_and_headers():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("x-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "id": "lead-1", "token": "p.s"})

    draft = Draft(selectedCategories=["Cancel something"], email="a@b.co", company="Acme")
    with _client(handler, api_key="k") as client:
        res = intake_submitter(client, {"utm_source": "fb", "utm_ad": ""})(draft)

    assert res["id"] == "lead-1"
    assert seen["path"] == "/api/submit-step1"
    assert seen["key"] == "k"
    assert seen["body"]["call_types"] == ["Cancel something"]
    assert seen["body"]["utm_source"] == "fb"
    assert "utm_ad" not in seen["body"]


def test_server_error_message_is_surfaced():
    handler = lambda request: httpx.Response(401, json={"error": "This link is invalid or has expired. Please start over."})
    with _client(handler) as client:
        with pytest.raises(CollaboratorError) as e:
            details_submitter(client, "bad")(Draft(company="Acme", details="d"))
    assert e.value.user_message == "This link is invalid or has expired. Please start over."
    assert e.value.status == 401


def test_non_json_response():
    handler = lambda request: httpx.Response(502, text="<html>Bad Gateway</html>", headers={"content-type": "text/html"})
    with _client(handler) as client:
        with pytest.raises(CollaboratorError) as e:
            client.verify_link("t")
    assert e.value.user_message == "Server error (502). Please try again."


def test_unparsable_json_response():
    handler = lambda request: httpx.Response(200, content=b"{oops", headers={"content-type": "application/json"})
    with _client(handler) as client:
        with pytest.raises(CollaboratorError) as e:
            client.verify_link("t")
    assert e.value.user_message == "Invalid server response. Please try again."


def test_error_without_message_uses_status():
    handler = lambda request: httpx.Response(500, json={})
    with _client(handler) as client:
        with pytest.raises(CollaboratorError) as e:
            client.verify_link("t")
    assert e.value.user_message == "Request failed (500)"


def test_network_error():
    def handler(request):
        raise httpx.ConnectError("refused")

    with _client(handler) as client:
        with pytest.raises(CollaboratorError) as e:
            client.send_verification("a@b.co")
    assert e.value.user_message == "Network error. Please check your connection."


def test_transcribe_encodes_audio():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"transcript_text": "hi", "audio_path": "lead-1/1.webm"})

    with _client(handler) as client:
        client.transcribe("tok", b"hi", "audio/webm")
    assert seen["body"] == {"token": "tok", "audio_base64": "aGk=", "audio_mime": "audio/webm"}


def test_quick_submitter_chains_calls():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/api/submit-step1":
            return httpx.Response(200, json={"ok": True, "id": "lead-1", "token": "p.s"})
        return httpx.Response(200, json={"ok": True, "token": "v.t"})

    with _client(handler) as client:
        res = quick_submitter(client)(Draft(selectedCategories=["Cancel something"], email="a@b.co"))
    assert calls == ["/api/submit-step1", "/api/send-verification"]
    assert res == {"id": "lead-1", "token": "p.s", "verificationToken": "v.t"}
