"""
Terminal intake client.

    intake-cli start [--utm-source S --utm-campaign C]   # category -> company/details -> email
    intake-cli resume <link-or-token>                     # company -> details (from the email link)
    intake-cli quick                                      # category -> email -> verification code

An empty line is Enter (commit the step); '<' goes back. Multi-line fields end
with a blank line, so Enter inside them inserts a newline instead of committing.
"""
from __future__ import annotations

import argparse
import mimetypes
import os
import re
import sys
from typing import Callable, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from app.client.analytics import Analytics
from app.client.api import IntakeApiClient, details_submitter, intake_submitter, quick_submitter
from app.client.drafts import FileDraftStore, default_draft_dir
from app.core.copy import CALL_CATEGORIES, COMMON_COMPANIES, COPY
from app.core.errors import AudioPermissionError, CollaboratorError
from app.core.flow import DETAILS_FLOW, INTAKE_FLOW, QUICK_FLOW, StepFlowController
from app.core.tokens import looks_resumable

BACK = "<"
_NUMBERS_RE = re.compile(r"^[\d,\s]+$")


class TerminalIO:
    def __init__(self, input_fn: Callable[[str], str] = input, output_fn: Callable[[str], None] = print):
        self.ask = input_fn
        self.out = output_fn


def extract_token(value: str) -> str:
    """Accept either the raw token or the full resume link (…?t=<token>)."""
    value = (value or "").strip()
    if "?" in value:
        qs = parse_qs(urlparse(value).query)
        return (qs.get("t") or qs.get("token") or [""])[0]
    return value


def complete_company(text: str) -> str:
    """Expand a unique case-insensitive prefix of a well-known company; otherwise keep the input."""
    text = text.strip()
    if not text:
        return text
    matches = [c for c in COMMON_COMPANIES if c.lower().startswith(text.lower())]
    return matches[0] if len(matches) == 1 else text


def read_audio(path: str) -> Tuple[bytes, str]:
    mime = mimetypes.guess_type(path)[0] or "audio/webm"
    # .webm/.mp4 are often registered as video containers
    if mime.startswith("video/"):
        mime = "audio/" + mime.split("/", 1)[1]
    try:
        with open(path, "rb") as f:
            return f.read(), mime
    except PermissionError as e:
        raise AudioPermissionError(str(e)) from e


def _read_multiline(io: TerminalIO, current: str) -> Optional[str]:
    """Blank line finishes; returns None when the user asked to go back."""
    if current:
        io.out(f"(current: {current!r}; blank line keeps it)")
    lines = []
    while True:
        line = io.ask("| ")
        if not lines and line.strip() == BACK:
            return None
        if line == "":
            break
        lines.append(line)
    return "\n".join(lines) if lines else current


# ---------------------------------------------------------------------------
# Step screens
# ---------------------------------------------------------------------------
def _category_screen(ctrl: StepFlowController, io: TerminalIO, **_) -> None:
    io.out(COPY["categoryTitle"])
    io.out(COPY["categorySubtitle"])
    while True:
        for i, cat in enumerate(CALL_CATEGORIES, start=1):
            mark = "x" if cat in ctrl.draft.selectedCategories else " "
            io.out(f"  [{mark}] {i}. {cat}")
        if ctrl.draft.freeText:
            io.out(f"  your own: {ctrl.draft.freeText}")
        line = io.ask("> ")
        if line.strip() == "":
            ctrl.handle_key("Enter")
            return
        if _NUMBERS_RE.match(line):
            for part in re.split(r"[,\s]+", line.strip()):
                if part.isdigit() and 1 <= int(part) <= len(CALL_CATEGORIES):
                    ctrl.toggle_selection(CALL_CATEGORIES[int(part) - 1])
            continue
        ctrl.update(freeText=line.strip())


def _company_details_screen(ctrl: StepFlowController, io: TerminalIO, **_) -> None:
    io.out(COPY["companyDetailsTitle"])
    io.out(COPY["companyDetailsSubtitle"])
    company = io.ask(f"Company [{ctrl.draft.company}]: ")
    if company.strip() == BACK:
        ctrl.go_back()
        return
    if company.strip():
        ctrl.update(company=complete_company(company))
    io.out("Details:")
    details = _read_multiline(io, ctrl.draft.details)
    if details is None:
        ctrl.go_back()
        return
    ctrl.update(details=details)
    ctrl.handle_key("Enter")


def _email_screen(ctrl: StepFlowController, io: TerminalIO, **_) -> None:
    io.out(COPY["emailTitle"])
    email = io.ask(f"{COPY['emailPlaceholder']} [{ctrl.draft.email}]: ")
    if email.strip() == BACK:
        ctrl.go_back()
        return
    if email.strip():
        ctrl.update(email=email.strip())
    ctrl.handle_key("Enter")


def _company_screen(ctrl: StepFlowController, io: TerminalIO, **_) -> None:
    io.out(COPY["companyTitle"])
    company = io.ask(f"[{ctrl.draft.company}]: ")
    if company.strip() == BACK:
        ctrl.go_back()
        return
    if company.strip():
        ctrl.update(company=complete_company(company))
    ctrl.handle_key("Enter")


def _details_screen(ctrl: StepFlowController, io: TerminalIO, transcriber=None, **_) -> None:
    io.out(COPY["detailsTitle"])
    io.out("Type a description (blank line to finish), or @<audio file> to transcribe a recording.")
    first = io.ask("| ")
    if first.strip() == BACK:
        ctrl.go_back()
        return

    if first.startswith("@") and transcriber is not None:
        path = first[1:].strip()
        try:
            result = transcriber(*read_audio(path))
        except (AudioPermissionError, FileNotFoundError, IsADirectoryError):
            io.out(f"! {COPY['microphoneDenied']}")
            return
        except CollaboratorError as e:
            io.out(f"! {e.user_message}")
            return
        text = result.get("transcript_text") or ""
        ctrl.update(details=text, transcript=text, audioPath=result.get("audio_path"))
        io.out(f"{COPY['transcriptLabel']}: {text}")
        io.out(f"{COPY['transcriptHelper']} (blank line keeps it)")
        edited = _read_multiline(io, ctrl.draft.details)
        if edited is not None and edited != text:
            ctrl.update(details=edited)
    else:
        rest = _read_multiline(io, "") if first else ""
        text = "\n".join([x for x in (first, rest) if x]) if first else ctrl.draft.details
        ctrl.update(details=text)
    ctrl.handle_key("Enter")


SCREENS = {
    "category": _category_screen,
    "company_details": _company_details_screen,
    "email": _email_screen,
    "company": _company_screen,
    "details": _details_screen,
}


def run_flow(ctrl: StepFlowController, io: TerminalIO, transcriber=None) -> str:
    """Drive the controller until it leaves its data-entry steps; returns the final step name."""
    while not ctrl.is_terminal:
        io.out("")
        io.out(f"{ctrl.progress_label()} · {COPY['keyboardHint']} · '{BACK}' to go back")
        if ctrl.current.multiline_fields:
            io.out(f"({', '.join(ctrl.current.multiline_fields)}: Enter adds a line, a blank line finishes)")
        SCREENS[ctrl.step](ctrl, io, transcriber=transcriber)
        if ctrl.error:
            io.out(f"! {ctrl.error}")
    return ctrl.step


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def _utm(args) -> dict:
    return {
        "utm_source": args.utm_source,
        "utm_campaign": args.utm_campaign,
        "utm_adset": args.utm_adset,
        "utm_ad": args.utm_ad,
    }


def cmd_start(args, client: IntakeApiClient, io: TerminalIO, analytics: Analytics) -> int:
    ctrl = StepFlowController(INTAKE_FLOW, intake_submitter(client, _utm(args)),
                              store=FileDraftStore(args.drafts), analytics=analytics)
    try:
        run_flow(ctrl, io)
    finally:
        ctrl.close()
    io.out(COPY["doneTitle"])
    io.out(COPY["doneSubtext"])
    token = (ctrl.result or {}).get("token")
    if token:
        io.out(f"Or continue now: intake-cli resume {token}")
    return 0


def cmd_resume(args, client: IntakeApiClient, io: TerminalIO, analytics: Analytics) -> int:
    token = extract_token(args.link)
    if not looks_resumable(token):
        io.out(COPY["invalidLink"])
        return 2

    ctrl = StepFlowController(DETAILS_FLOW, details_submitter(client, token),
                              store=FileDraftStore(args.drafts), analytics=analytics)
    transcriber = lambda audio, mime: client.transcribe(token, audio, mime)
    try:
        while True:
            run_flow(ctrl, io, transcriber=transcriber)
            io.out(COPY["completionTitle"])
            io.out(COPY["completionSubtext"])
            again = io.ask(f"{COPY['completionButton']}? [y/N] ")
            if again.strip().lower() not in ("y", "yes"):
                return 0
            ctrl.reset()
    finally:
        ctrl.close()


def cmd_quick(args, client: IntakeApiClient, io: TerminalIO, analytics: Analytics) -> int:
    ctrl = StepFlowController(QUICK_FLOW, quick_submitter(client, _utm(args)),
                              store=FileDraftStore(args.drafts), analytics=analytics)
    try:
        run_flow(ctrl, io)
        verification_token = (ctrl.result or {}).get("verificationToken") or ""
        io.out(COPY["verifySent"])
        while ctrl.step != "done":
            code = io.ask("Code: ").strip()
            try:
                client.verify_code(verification_token, code)
            except CollaboratorError as e:
                io.out(f"! {e.user_message}")
                if e.status == 401:
                    return 2
                continue
            ctrl.confirm_verification()
        io.out(COPY["verifyDone"])
        return 0
    finally:
        ctrl.close()


def _add_utm_args(p: argparse.ArgumentParser) -> None:
    for name in ("source", "campaign", "adset", "ad"):
        p.add_argument(f"--utm-{name}", dest=f"utm_{name}", default=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="intake-cli", description="Lead intake from the terminal")
    parser.add_argument("--api", default=os.getenv("INTAKE_API_URL", "http://localhost:8000"))
    parser.add_argument("--api-key", default=os.getenv("API_KEY", ""))
    parser.add_argument("--drafts", default=default_draft_dir(), help="Directory for autosaved drafts")
    sub = parser.add_subparsers(dest="command", required=True)

    _add_utm_args(sub.add_parser("start", help="Start a new intake"))
    resume = sub.add_parser("resume", help="Continue from the emailed link")
    resume.add_argument("link", help="Resume link or bare token")
    _add_utm_args(sub.add_parser("quick", help="Two-step intake with email verification"))
    return parser


COMMANDS = {"start": cmd_start, "resume": cmd_resume, "quick": cmd_quick}


def main(argv=None, io: Optional[TerminalIO] = None) -> int:
    args = build_parser().parse_args(argv)
    io = io or TerminalIO()
    analytics = Analytics("intake-cli").init()
    try:
        with IntakeApiClient(args.api, api_key=args.api_key) as client:
            return COMMANDS[args.command](args, client, io, analytics)
    except (EOFError, KeyboardInterrupt):
        io.out("")
        io.out("Draft saved. Run the same command again to pick up where you left off.")
        return 1
    finally:
        analytics.shutdown()


if __name__ == "__main__":
    sys.exit(main())
