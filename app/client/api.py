"""
HTTP submission collaborator used by the step-flow controller.

Every failure is converted into CollaboratorError carrying a message that is
safe to show to the user: the server's {"error": ...} text when present,
otherwise a generic retry prompt.
"""
from __future__ import annotations

import base64
from typing import Any, Callable, Dict, Optional

import httpx

from app.core.errors import CollaboratorError
from app.core.flow import Draft
from app.observability.logging import log

UTM_FIELDS = ("utm_source", "utm_campaign", "utm_adset", "utm_ad")


class IntakeApiClient:
    def __init__(self, base_url: str, api_key: str = "", timeout: float = 30.0, transport=None):
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key
        self._client = httpx.Client(base_url=self.base_url, headers=headers, timeout=timeout, transport=transport)

    def __enter__(self) -> "IntakeApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _call(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self._client.post(f"/api/{name}", json=body)
        except httpx.HTTPError as e:
            log(event="api_network_error", call=name, errorType=type(e).__name__)
            raise CollaboratorError("Network error. Please check your connection.")

        content_type = resp.headers.get("content-type", "")
        if "application/json" not in content_type:
            log(event="api_non_json_response", call=name, statusCode=resp.status_code)
            raise CollaboratorError(f"Server error ({resp.status_code}). Please try again.")

        try:
            data = resp.json()
        except ValueError:
            log(event="api_json_parse_error", call=name, statusCode=resp.status_code)
            raise CollaboratorError("Invalid server response. Please try again.")

        if not resp.is_success:
            message = data.get("error") if isinstance(data, dict) else None
            raise CollaboratorError(message or f"Request failed ({resp.status_code})", status=resp.status_code)
        return data if isinstance(data, dict) else {}

    def submit_step1(self, draft: Draft, utm: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "email": draft.email,
            "call_types": list(draft.selectedCategories),
            "avoided_call_text": draft.freeText or None,
            "company": draft.company or None,
            "description_text": draft.details or None,
        }
        for k in UTM_FIELDS:
            v = (utm or {}).get(k)
            if v:
                body[k] = v
        return self._call("submit-step1", body)

    def submit_step2(self, token: str, draft: Draft, phone: Optional[str] = None) -> Dict[str, Any]:
        return self._call("submit-step2", {
            "token": token,
            "company": draft.company,
            "description_text": draft.details,
            "audio_path": draft.audioPath or None,
            "transcript_text": draft.transcript or None,
            "phone": phone or None,
        })

    def transcribe(self, token: str, audio: bytes, mime: str) -> Dict[str, Any]:
        return self._call("transcribe-audio", {
            "token": token,
            "audio_base64": base64.b64encode(audio).decode("ascii"),
            "audio_mime": mime,
        })

    def send_verification(self, email: str) -> Dict[str, Any]:
        return self._call("send-verification", {"email": email})

    def verify_code(self, token: str, code: str) -> Dict[str, Any]:
        return self._call("verify-code", {"token": token, "code": code})

    def verify_link(self, token: str) -> Dict[str, Any]:
        return self._call("verify-link", {"token": token})


# ---------------------------------------------------------------------------
# Submitters: adapt the client to the controller's Draft -> result contract
# ---------------------------------------------------------------------------
def intake_submitter(client: IntakeApiClient, utm: Optional[Dict[str, str]] = None) -> Callable[[Draft], Dict[str, Any]]:
    return lambda draft: client.submit_step1(draft, utm)


def details_submitter(client: IntakeApiClient, token: str) -> Callable[[Draft], Dict[str, Any]]:
    return lambda draft: client.submit_step2(token, draft)


def quick_submitter(client: IntakeApiClient, utm: Optional[Dict[str, str]] = None) -> Callable[[Draft], Dict[str, Any]]:
    """Store the lead, then start email verification; the result carries both tokens."""
    def _submit(draft: Draft) -> Dict[str, Any]:
        step1 = client.submit_step1(draft, utm)
        verification = client.send_verification(draft.email)
        return {"id": step1.get("id"), "token": step1.get("token"), "verificationToken": verification.get("token")}
    return _submit
