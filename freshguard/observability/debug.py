"""Opt-in diagnostic capture for checks and connectors."""

import time
import uuid
from typing import Any

from loguru import logger

from freshguard.config import DebugConfig


class DebugContext:
    """
    Collects timings and context for a single check or connector call.

    Nothing is captured unless ``config.enabled`` is set, so a disabled
    context is cheap to pass around.
    """

    def __init__(self, config: DebugConfig | None, prefix: str = "check", **context: Any):
        self.config = config or DebugConfig()
        self.debug_id = f"{prefix}-{uuid.uuid4().hex[:10]}"
        self.context: dict[str, Any] = dict(context)
        self.operations: list[dict[str, Any]] = []
        self.raw_error: str | None = None
        self.error_type: str | None = None
        self._started = time.perf_counter()
        self._log = logger.bind(debug_id=self.debug_id)

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def record_operation(self, name: str, duration_ms: float, success: bool = True, **details: Any) -> None:
        """Record a timed operation (e.g. a data source call)."""
        if not self.enabled:
            return

        entry: dict[str, Any] = {"operation": name, "duration_ms": round(duration_ms, 3), "success": success}
        if self.config.expose_queries and details:
            entry.update(details)
        self.operations.append(entry)
        self._log.debug(f"[DEBUG-{self.debug_id}] {name} finished in {duration_ms:.1f}ms (success={success})")

    def record_error(self, error: BaseException) -> None:
        """Keep the error type and, if allowed, its raw text."""
        if not self.enabled:
            return

        self.error_type = type(error).__name__
        if self.config.expose_raw_errors:
            self.raw_error = str(error)
        self._log.debug(f"[DEBUG-{self.debug_id}] failed with {self.error_type}")

    def to_payload(self) -> dict[str, Any] | None:
        """Build the labeled debug payload, or None when debugging is off."""
        if not self.enabled:
            return None

        payload: dict[str, Any] = {
            "label": "debug",
            "debug_id": self.debug_id,
            "check_type": self.context.get("check_type"),
            "rule_id": self.context.get("rule_id"),
            "duration_ms": round((time.perf_counter() - self._started) * 1000, 3),
            "operations": list(self.operations),
            "context": dict(self.context),
        }
        if self.error_type:
            payload["error_type"] = self.error_type
        if self.raw_error is not None:
            payload["raw_error"] = self.raw_error
        return payload
