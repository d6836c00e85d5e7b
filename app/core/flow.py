"""
Step Flow Controller
--------------------
Finite state machine for the multi-step intake form.

Each flow variant is an ordered tuple of data-entry steps followed by a
terminal state (optionally preceded by an email-verification waiting state).
Forward moves are gated by the step's validator; the last step hands the draft
to a submission collaborator. Validation failures are returned as signals,
never raised.

The draft is written through to a DraftStore on every change so a reload
(or a crash) can pick up where the user left off.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, fields as dc_fields
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.core.copy import COPY
from app.core.errors import CollaboratorError, GENERIC_RETRY_MESSAGE
from app.observability.logging import log

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DONE = "done"
AWAITING_VERIFICATION = "awaiting_verification"


@dataclass
class Draft:
    selectedCategories: List[str] = field(default_factory=list)
    freeText: str = ""
    company: str = ""
    details: str = ""
    email: str = ""
    transcript: str = ""
    audioPath: Optional[str] = None

    def to_dict(self, exclude: Tuple[str, ...] = ()) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in dc_fields(self) if f.name not in exclude}
        data["selectedCategories"] = list(self.selectedCategories)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Draft":
        """Rebuild from a persisted snapshot; unknown keys are dropped, bad types fall back to defaults."""
        d = cls()
        if not isinstance(data, dict):
            return d
        cats = data.get("selectedCategories")
        if isinstance(cats, (list, tuple, set)):
            seen: List[str] = []
            for c in cats:
                if isinstance(c, str) and c not in seen:
                    seen.append(c)
            d.selectedCategories = seen
        for name in ("freeText", "company", "details", "email", "transcript"):
            v = data.get(name)
            if isinstance(v, str):
                setattr(d, name, v)
        ap = data.get("audioPath")
        d.audioPath = ap if isinstance(ap, str) and ap else None
        return d


# ---------------------------------------------------------------------------
# Validators (declarative per step)
# ---------------------------------------------------------------------------
Validator = Callable[[Draft], bool]


def require_category(d: Draft) -> bool:
    return bool(d.selectedCategories) or bool(d.freeText.strip())


def always_valid(d: Draft) -> bool:
    return True


def require_company(d: Draft) -> bool:
    return bool(d.company.strip())


def require_details(d: Draft) -> bool:
    return bool(d.details.strip())


def require_email(d: Draft) -> bool:
    return bool(EMAIL_RE.match(d.email or ""))


@dataclass(frozen=True)
class StepSpec:
    name: str
    validate: Validator = always_valid
    error: str = ""
    multiline_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FlowVariant:
    name: str
    steps: Tuple[StepSpec, ...]
    storage_key: str
    terminal: str = DONE
    waiting: Optional[str] = None
    persist_exclude: Tuple[str, ...] = ()


CATEGORY_STEP = StepSpec("category", require_category, COPY["categoryError"])
EMAIL_STEP = StepSpec("email", require_email, COPY["emailError"])

INTAKE_FLOW = FlowVariant(
    name="intake",
    steps=(
        CATEGORY_STEP,
        StepSpec("company_details", always_valid, multiline_fields=("details",)),
        EMAIL_STEP,
    ),
    storage_key="step1_data",
)

DETAILS_FLOW = FlowVariant(
    name="details",
    steps=(
        StepSpec("company", require_company, COPY["companyError"]),
        StepSpec("details", require_details, COPY["detailsError"], multiline_fields=("details",)),
    ),
    storage_key="step2_data",
    persist_exclude=("audioPath",),
)

QUICK_FLOW = FlowVariant(
    name="quick",
    steps=(CATEGORY_STEP, EMAIL_STEP),
    storage_key="step1_data",
    waiting=AWAITING_VERIFICATION,
)


def should_commit(key: str, shift: bool = False, multiline_focus: bool = False) -> bool:
    """Enter without Shift commits the step, except inside a multi-line text area (newline entry)."""
    return key == "Enter" and not shift and not multiline_focus


class StepOutcome(str, Enum):
    ADVANCED = "advanced"
    BLOCKED = "blocked"            # validation failed; error set
    SUBMITTED = "submitted"
    SUBMIT_FAILED = "submit_failed"
    BUSY = "busy"                  # a submission is already in flight
    BACK = "back"
    IGNORED = "ignored"            # transition not allowed from the current state
    DISCARDED = "discarded"        # late result after reset/close


Submitter = Callable[[Draft], Any]


class StepFlowController:
    def __init__(self, variant: FlowVariant, submitter: Submitter, store=None, analytics=None):
        self.variant = variant
        self.submitter = submitter
        self.store = store
        self.analytics = analytics
        self.error = ""
        self.is_submitting = False
        self.result: Any = None
        self._index = 0
        self._terminal: Optional[str] = None
        self._generation = 0
        self._closed = False
        self.draft = self._load_draft()
        self._track(f"{self.step}_view")

    # -- state -------------------------------------------------------------
    @property
    def step(self) -> str:
        if self._terminal:
            return self._terminal
        return self.variant.steps[self._index].name

    @property
    def position(self) -> int:
        return self._index

    @property
    def is_terminal(self) -> bool:
        return self._terminal is not None

    @property
    def is_final_step(self) -> bool:
        return not self.is_terminal and self._index == len(self.variant.steps) - 1

    @property
    def current(self) -> Optional[StepSpec]:
        return None if self.is_terminal else self.variant.steps[self._index]

    def progress_label(self) -> str:
        if self.is_terminal:
            return ""
        return f"Step {self._index + 1} of {len(self.variant.steps)}"

    # -- draft edits ---------------------------------------------------------
    def update(self, **changes: Any) -> None:
        allowed = {f.name for f in dc_fields(Draft)}
        for k, v in changes.items():
            if k not in allowed:
                raise AttributeError(f"Unknown draft field: {k}")
            setattr(self.draft, k, v)
        self.error = ""
        self._persist()

    def toggle_selection(self, item: str) -> None:
        cats = self.draft.selectedCategories
        if item in cats:
            cats.remove(item)
        else:
            cats.append(item)
        self.error = ""
        self._persist()

    # -- transitions -------------------------------------------------------
    def go_next(self) -> StepOutcome:
        if self._closed or self.is_terminal:
            return StepOutcome.IGNORED
        if self.is_submitting:
            return StepOutcome.BUSY

        spec = self.variant.steps[self._index]
        self.error = ""
        if not spec.validate(self.draft):
            self.error = spec.error or GENERIC_RETRY_MESSAGE
            return StepOutcome.BLOCKED

        if not self.is_final_step:
            self._track(f"{spec.name}_complete")
            self._index += 1
            self._track(f"{self.step}_view")
            return StepOutcome.ADVANCED

        return self._submit()

    def go_back(self) -> StepOutcome:
        if self._closed or self.is_terminal or self._index == 0 or self.is_submitting:
            return StepOutcome.IGNORED
        self.error = ""
        self._index -= 1
        return StepOutcome.BACK

    def handle_key(self, key: str, shift: bool = False, multiline_focus: bool = False) -> bool:
        """Returns True when the key was consumed as a commit."""
        if self.is_terminal or self._closed:
            return False
        if not should_commit(key, shift, multiline_focus):
            return False
        self.go_next()
        return True

    def confirm_verification(self) -> StepOutcome:
        if self._terminal != self.variant.waiting or self.variant.waiting is None:
            return StepOutcome.IGNORED
        self._terminal = self.variant.terminal
        self._track("email_verified")
        return StepOutcome.ADVANCED

    def reset(self) -> None:
        """Explicit reset ('Submit another request'): fresh draft, first step, snapshot removed."""
        self._generation += 1
        self.draft = Draft()
        self._index = 0
        self._terminal = None
        self.error = ""
        self.is_submitting = False
        self.result = None
        self._clear_persisted()

    def close(self) -> None:
        """Teardown; any submission still running will have its result discarded."""
        self._generation += 1
        self._closed = True
        self.is_submitting = False

    # -- internals ---------------------------------------------------------
    def _submit(self) -> StepOutcome:
        generation = self._generation
        self.is_submitting = True
        failure: Optional[str] = None
        result: Any = None
        try:
            result = self.submitter(self.draft)
        except CollaboratorError as e:
            failure = e.user_message
        except Exception as e:
            log(event="flow_submit_exception", flow=self.variant.name, errorType=type(e).__name__)
            failure = GENERIC_RETRY_MESSAGE

        if generation != self._generation or self._closed:
            log(event="flow_submit_result_discarded", flow=self.variant.name)
            return StepOutcome.DISCARDED

        self.is_submitting = False
        if failure is not None:
            self.error = failure
            self._track("submit_failed")
            return StepOutcome.SUBMIT_FAILED

        self.result = result
        if self.analytics is not None and self.draft.email:
            self.analytics.identify(self.draft.email)
        self.draft = Draft()
        self._clear_persisted()
        self._terminal = self.variant.waiting or self.variant.terminal
        self._track("form_submit")
        return StepOutcome.SUBMITTED

    def _load_draft(self) -> Draft:
        if self.store is None:
            return Draft()
        try:
            return Draft.from_dict(self.store.load(self.variant.storage_key))
        except Exception as e:
            log(event="draft_load_failed", key=self.variant.storage_key, errorType=type(e).__name__)
            return Draft()

    def _persist(self) -> None:
        if self.store is None or self._closed:
            return
        try:
            self.store.save(self.variant.storage_key, self.draft.to_dict(exclude=self.variant.persist_exclude))
        except Exception as e:
            log(event="draft_save_failed", key=self.variant.storage_key, errorType=type(e).__name__)

    def _clear_persisted(self) -> None:
        if self.store is None:
            return
        try:
            self.store.delete(self.variant.storage_key)
        except Exception as e:
            log(event="draft_delete_failed", key=self.variant.storage_key, errorType=type(e).__name__)

    def _track(self, event: str, **props: Any) -> None:
        if self.analytics is not None:
            self.analytics.track(event, flow=self.variant.name, **props)
