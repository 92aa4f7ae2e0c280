"""
Ephemeral clipboard exposure.

``ClipboardSession.expose`` copies a secret to the system clipboard, waits for
a fixed window that a cancel signal (a key press) can cut short,
and then clears the clipboard. The clear runs on every exit path; a failure to
clear is logged and kept on the session, never raised.

States: IDLE → EXPOSED → CLEARED.
"""

from __future__ import annotations

import enum
import logging
import os
import select
import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TextIO

import pyperclip
from prompt_toolkit.input.vt100 import cbreak_mode

from rvault.config import DEFAULT_CLIP_SECONDS
from rvault.errors import ClipboardUnavailable

logger = logging.getLogger(__name__)


class Clipboard(ABC):
    @abstractmethod
    def copy(self, text: str) -> None:
        """Place ``text`` on the clipboard. Raises ClipboardUnavailable."""

    @abstractmethod
    def clear(self) -> None:
        """Empty the clipboard. Raises ClipboardUnavailable."""


class SystemClipboard(Clipboard):
    """The desktop clipboard via pyperclip."""

    def copy(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise ClipboardUnavailable(f"Clipboard is not available: {e}") from e

    def clear(self) -> None:
        try:
            pyperclip.copy("")
        except pyperclip.PyperclipException as e:
            raise ClipboardUnavailable(f"Failed to clear clipboard: {e}") from e


class CancelSignal(ABC):
    @abstractmethod
    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds. True if cancellation arrived."""


class StdinCancelSignal(CancelSignal):
    """Standard input cancels the wait.

    On a terminal any key press counts; piped input needs a line. End of input
    never cancels, the wait then runs out its full timeout.
    """

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdin
        self.closed = False

    def wait(self, timeout: float) -> bool:
        if self.closed:
            time.sleep(timeout)
            return False
        if self.stream.isatty():
            return self._wait_for_key(timeout)
        ready, _, _ = select.select([self.stream], [], [], timeout)
        if not ready:
            return False
        # Consume the line so it does not leak into the shell.
        if not self.stream.readline():
            return self._input_closed(timeout)
        return True

    def _wait_for_key(self, timeout: float) -> bool:
        fd = self.stream.fileno()
        with cbreak_mode(fd):
            ready, _, _ = select.select([fd], [], [], timeout)
            if not ready:
                return False
            pressed = os.read(fd, 1024)
        if not pressed:
            return self._input_closed(timeout)
        return True

    def _input_closed(self, timeout: float) -> bool:
        logger.debug("Standard input closed; waiting out the clipboard window")
        self.closed = True
        time.sleep(timeout)
        return False


class SessionState(enum.Enum):
    IDLE = "idle"
    EXPOSED = "exposed"
    CLEARED = "cleared"


class ClipboardSession:
    """One exposure of one secret on the clipboard."""

    def __init__(
        self,
        clipboard: Clipboard,
        signal: CancelSignal,
        duration: float = DEFAULT_CLIP_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.clipboard = clipboard
        self.signal = signal
        self.duration = duration
        self.clock = clock
        self.state = SessionState.IDLE
        self.cancelled = False
        self.clear_error: ClipboardUnavailable | None = None

    def expose(
        self,
        secret: str,
        on_exposed: Callable[[float], None] | None = None,
    ) -> bool:
        """Expose ``secret`` for the session duration.

        Returns True if the wait was cancelled before the window ran out.
        Raises ClipboardUnavailable if the secret could not be copied.
        """
        if self.state is SessionState.EXPOSED:
            raise RuntimeError("Clipboard session is already exposed")
        self.state = SessionState.IDLE
        self.cancelled = False
        self.clear_error = None

        try:
            self.clipboard.copy(secret)
            self.state = SessionState.EXPOSED
            logger.debug("Secret exposed on clipboard for %.1fs", self.duration)
            if on_exposed is not None:
                on_exposed(self.duration)
            self.cancelled = self._wait()
            return self.cancelled
        finally:
            self._clear()

    def _wait(self) -> bool:
        start = self.clock()
        while True:
            remaining = self.duration - (self.clock() - start)
            if remaining <= 0:
                return False
            if self.signal.wait(remaining):
                return True

    def _clear(self) -> None:
        try:
            self.clipboard.clear()
        except ClipboardUnavailable as e:
            self.clear_error = e
            logger.warning("Clipboard could not be cleared: %s", e)
        self.state = SessionState.CLEARED
        logger.debug("Clipboard cleared (cancelled=%s)", self.cancelled)
