from typing import Any, Optional

from app.observability.logging import log


class Analytics:
    """
    Client-side product analytics, passed explicitly to whoever needs it.
    Events go to the structured log; nothing is recorded before init() or after shutdown().
    """

    def __init__(self, app_name: str = "intake"):
        self.app_name = app_name
        self.enabled = False
        self.distinct_id: Optional[str] = None

    def init(self) -> "Analytics":
        self.enabled = True
        log(event="analytics_init", app=self.app_name)
        return self

    def shutdown(self) -> None:
        if self.enabled:
            log(event="analytics_shutdown", app=self.app_name)
        self.enabled = False

    def identify(self, email: str) -> None:
        self.distinct_id = email or None

    def track(self, name: str, **properties: Any) -> None:
        if not self.enabled:
            return
        log(event="analytics", name=name, app=self.app_name, identified=bool(self.distinct_id), props=properties)
