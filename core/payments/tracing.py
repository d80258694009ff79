"""
Step-tagged request tracing.

Every payment endpoint logs its stages through a `StepTrace` so a single
request can be followed across order creation, provider calls and database
writes:

    [RAZORPAY-WEBHOOK 3f9a1c2e] Event parsed - {"event": "payment.captured"}
"""

import json
import logging
import uuid
from typing import Any, Optional

logger = logging.getLogger("core.payments.trace")


class StepTrace:
    def __init__(self, tag: str, request_id: Optional[str] = None) -> None:
        self.tag = tag
        self.request_id = request_id or uuid.uuid4().hex[:8]

    def _format(self, step: str, details: dict) -> str:
        prefix = f"[{self.tag} {self.request_id}] {step}"
        if not details:
            return prefix
        return f"{prefix} - {json.dumps(details, default=str, sort_keys=True)}"

    def step(self, step: str, **details: Any) -> None:
        logger.info(self._format(step, details))

    def warning(self, step: str, **details: Any) -> None:
        logger.warning(self._format(step, details))

    def error(self, step: str, exc_info: bool = False, **details: Any) -> None:
        logger.error(self._format(step, details), exc_info=exc_info)
