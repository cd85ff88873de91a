# linework/orchestration/cancellation.py
"""Cooperative cancellation token polled by the orchestrator at round boundaries."""

import logging

logger = logging.getLogger(__name__)


class CancelToken:
    """
    Stop request shared between the caller and a running orchestrator.

    Cancellation is cooperative: the orchestrator checks the token before
    dispatching each round, and in-flight requests are allowed to finish.
    The first reason recorded wins.
    """

    def __init__(self) -> None:
        self._reason: str | None = None

    def cancel(self, reason: str = "user") -> None:
        if self._reason is None:
            self._reason = reason
            logger.info(f"Cancellation requested (reason={reason})")

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason
