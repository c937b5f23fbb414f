from __future__ import annotations

import inspect
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from enum import Enum

from app.config import settings

logger = logging.getLogger(__name__)

ALERT_OUTBOX_LIMIT = 50


class PermissionDenied(Exception):
    pass


class PermissionState(str, Enum):
    UNKNOWN = 'default'
    GRANTED = 'granted'
    DENIED = 'denied'


class NotificationChannel:
    """OS notification permission as reported by the browser.

    A request is only flagged while the answer is still unknown, so a denial
    is never asked again.
    """

    def __init__(self, state: PermissionState = PermissionState.UNKNOWN) -> None:
        self.state = state
        self.request_pending = False

    def request_permission(self) -> bool:
        if self.state is not PermissionState.UNKNOWN:
            return False
        self.request_pending = True
        return True

    def record_permission(self, value: str) -> PermissionState:
        self.state = PermissionState(value)
        self.request_pending = False
        return self.state

    def ensure_granted(self) -> None:
        if self.state is not PermissionState.GRANTED:
            raise PermissionDenied(f'OS notifications are {self.state.value}')


class AlertOutbox:
    def __init__(self, limit: int = ALERT_OUTBOX_LIMIT) -> None:
        self._lock = threading.Lock()
        self._events: deque[dict] = deque(maxlen=limit)

    def push(self, kind: str, **data) -> None:
        with self._lock:
            self._events.append({'kind': kind, **data})

    def drain(self) -> list[dict]:
        with self._lock:
            events = list(self._events)
            self._events.clear()
        return events


class Toast:
    """Single in-app toast; showing a new message replaces the old one and restarts its window."""

    def __init__(self, *, window_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.window_seconds = settings.toast_window_seconds if window_seconds is None else window_seconds
        self._clock = clock
        self._message: str | None = None
        self._shown_at: float | None = None

    def show(self, message: str) -> None:
        self._message = message
        self._shown_at = self._clock()

    def dismiss(self) -> None:
        self._message = None
        self._shown_at = None

    @property
    def visible(self) -> bool:
        if self._shown_at is None:
            return False
        if self._clock() - self._shown_at >= self.window_seconds:
            self.dismiss()
            return False
        return True

    @property
    def message(self) -> str | None:
        return self._message if self.visible else None

    @property
    def remaining_seconds(self) -> float:
        if not self.visible:
            return 0.0
        return max(0.0, self.window_seconds - (self._clock() - self._shown_at))


class NotificationDispatcher:
    def __init__(
        self,
        *,
        outbox: AlertOutbox,
        channel: NotificationChannel,
        toast: Toast,
        on_open: Callable[[], object] | None = None,
    ) -> None:
        self.outbox = outbox
        self.channel = channel
        self.toast = toast
        self.on_open = on_open

    def notify(self, message: str) -> None:
        for name, deliver in (
            ('audio', self._play_sound),
            ('toast', self._show_toast),
            ('os', self._raise_os_notification),
        ):
            try:
                deliver(message)
            except PermissionDenied as exc:
                logger.debug('Skipping %s notification: %s', name, exc)
            except Exception:
                logger.exception('Notification channel %s failed', name)

    def _play_sound(self, message: str) -> None:
        self.outbox.push('sound')

    def _show_toast(self, message: str) -> None:
        self.toast.show(message)

    def _raise_os_notification(self, message: str) -> None:
        self.channel.ensure_granted()
        self.outbox.push(
            'os_notification',
            title=settings.notification_title,
            body=message,
            icon=settings.notification_icon_url,
        )

    async def click_toast(self) -> bool:
        if not self.toast.visible:
            return False
        try:
            if self.on_open is not None:
                result = self.on_open()
                if inspect.isawaitable(result):
                    await result
        finally:
            self.toast.dismiss()
        return True

    def dismiss_toast(self) -> None:
        self.toast.dismiss()
