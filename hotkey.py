"""Push-to-talk hotkey based on pynput: hold to speak, release to score."""

from __future__ import annotations

import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


class PushToTalkHotkey:
    def __init__(self, hotkey_name: str = "Key.alt_l") -> None:
        self._hotkey_name = hotkey_name
        self._listener: Optional[object] = None
        self._pressed = False
        self._lock = threading.Lock()

    def start(self, on_press: Callable[[], None], on_release: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._listener = keyboard.Listener(
            on_press=self._edge_handler(True, on_press),
            on_release=self._edge_handler(False, on_release),
        )
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    def _edge_handler(self, pressed: bool, callback: Callable[[], None]) -> Callable[[object], None]:
        # Key auto-repeat sends many presses; only the edges are forwarded.
        def handle(key: object) -> None:
            if str(key) != self._hotkey_name:
                return
            with self._lock:
                if self._pressed == pressed:
                    return
                self._pressed = pressed
            callback()

        return handle
