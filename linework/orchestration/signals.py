# linework/orchestration/signals.py
"""
Ctrl+C handling for interactive runs on Windows and Unix.

The first SIGINT/SIGTERM requests a cooperative stop through a CancelToken so
in-flight pages can finish and be saved; a second one interrupts immediately.
"""

import asyncio
import logging
import signal
from collections.abc import Callable

from linework.orchestration.cancellation import CancelToken

logger = logging.getLogger(__name__)


def install_cancel_handlers(token: CancelToken) -> Callable[[], None]:
    """
    Route SIGINT/SIGTERM to a CancelToken.

    On Windows (ProactorEventLoop), add_signal_handler is not supported,
    so we fall back to signal.signal().

    Args:
        token: Token to cancel on the first signal

    Returns:
        Callable that restores the previous handlers
    """
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM)

    def _on_signal(sig_name: str) -> None:
        if token.cancelled:
            logger.warning(f"Received second {sig_name}, interrupting")
            raise KeyboardInterrupt
        logger.info(f"Received {sig_name}, finishing in-flight pages before stopping")
        token.cancel(reason="user")

    try:
        for sig in signals:
            loop.add_signal_handler(sig, _on_signal, sig.name)
        logger.debug("Cancel handlers registered (loop-based)")

        def _restore() -> None:
            for sig in signals:
                loop.remove_signal_handler(sig)

        return _restore

    except NotImplementedError:
        previous = {sig: signal.getsignal(sig) for sig in signals}

        def _signal_callback(sig_num, frame) -> None:
            _on_signal(signal.Signals(sig_num).name)

        for sig in signals:
            signal.signal(sig, _signal_callback)
        logger.debug("Cancel handlers registered (fallback for Windows)")

        def _restore_fallback() -> None:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        return _restore_fallback
