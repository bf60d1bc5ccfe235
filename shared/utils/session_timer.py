"""
shared/utils/session_timer.py
Inactivity timer for a live session: a warning timer and a hard-logout
timer, both re-armed to full length on every qualifying activity.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

# Client-side input events that count as activity
ACTIVITY_EVENTS = frozenset({"pointerdown", "keydown", "scroll", "touchstart"})

Callback = Callable[[], Awaitable[None]]


class InactivityTimer:
    """
    Two event-loop timers:
      - on_warning fires after (timeout - warning) seconds of inactivity
      - on_expire fires after timeout seconds of inactivity

    reset() cancels and re-arms both, cancel() tears them down. Both are
    idempotent, and a cancelled timer never fires. rearm() points the
    timers at a window that is already partly used up.
    """

    def __init__(
        self,
        timeout_seconds: float,
        warning_seconds: float,
        on_warning: Callback,
        on_expire: Callback,
    ):
        if warning_seconds >= timeout_seconds:
            raise ValueError("warning_seconds must be shorter than timeout_seconds")
        self.timeout_seconds = timeout_seconds
        self.warning_seconds = warning_seconds
        self._on_warning = on_warning
        self._on_expire = on_expire
        self._warning_handle: Optional[asyncio.TimerHandle] = None
        self._expire_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self._expired = False

    @property
    def armed(self) -> bool:
        return self._expire_handle is not None

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Cancel both timers and arm them again at full length."""
        if self._expired:
            return
        self._arm(self.timeout_seconds)

    def rearm(self, remaining_seconds: float) -> None:
        """
        Arm both timers for a window with remaining_seconds left, even after
        expiry fired. The warning is skipped when it is already due.
        """
        self._expired = False
        self._arm(remaining_seconds)

    def _arm(self, remaining_seconds: float) -> None:
        self._cancel_handles()
        loop = asyncio.get_running_loop()
        warn_in = remaining_seconds - self.warning_seconds
        if warn_in > 0:
            self._warning_handle = loop.call_later(warn_in, self._fire, self._on_warning, False)
        self._expire_handle = loop.call_later(remaining_seconds, self._fire, self._on_expire, True)

    def cancel(self) -> None:
        self._cancel_handles()
        current = asyncio.current_task()
        for task in list(self._tasks):
            # a callback may cancel its own timer
            if task is not current:
                task.cancel()
        self._tasks.clear()

    def _cancel_handles(self) -> None:
        if self._warning_handle is not None:
            self._warning_handle.cancel()
            self._warning_handle = None
        if self._expire_handle is not None:
            self._expire_handle.cancel()
            self._expire_handle = None

    def _fire(self, callback: Callback, final: bool) -> None:
        if final:
            self._expired = True
            self._cancel_handles()
        else:
            self._warning_handle = None
        task = asyncio.ensure_future(self._run(callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, callback: Callback) -> None:
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Inactivity timer callback %s failed", getattr(callback, "__name__", callback))
