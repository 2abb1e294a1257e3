"""
Input buffer for keyboard-wedge barcode scanners.

Handheld and Bluetooth scanners usually "type" the decoded text as key
presses and finish with Enter. ScanBuffer collects those keys and hands
back one complete scan when the delimiter arrives, or when the scanner
has gone quiet for `timeout` seconds.

States: IDLE -> ACCUMULATING -> (flush) -> IDLE
"""

import typing
from enum import Enum, auto


class ScanState(Enum):
    IDLE = auto()
    ACCUMULATING = auto()


class ScanBuffer:
    def __init__(self, timeout: float = 0.1, delimiter: str = "Enter"):
        """
        - timeout   : seconds of silence after which a partial scan is flushed
        - delimiter : key name that ends a scan
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout!r}")
        self.timeout = timeout
        self.delimiter = delimiter
        self._chars: list[str] = []
        self._last_key_at: typing.Optional[float] = None

    @property
    def state(self) -> ScanState:
        return ScanState.ACCUMULATING if self._chars else ScanState.IDLE

    def feed(self, key: str, now: float) -> typing.Optional[str]:
        """
        Process one key event at time `now` (seconds, monotonic).
        Returns a completed scan or None.

        - the delimiter flushes the buffer
        - single printable characters are appended
        - other key names (Shift, Tab, ...) are ignored
        A character arriving after the timeout first flushes the stale scan,
        which is returned, and then starts a new one.
        """
        if key == self.delimiter:
            return self._flush()
        if len(key) != 1 or not key.isprintable():
            return None

        completed = self.poll(now)
        self._chars.append(key)
        self._last_key_at = now
        return completed

    def poll(self, now: float) -> typing.Optional[str]:
        """Flush the buffer if the scanner has been silent for `timeout` seconds."""
        if self._chars and self._last_key_at is not None and now - self._last_key_at >= self.timeout:
            return self._flush()
        return None

    def reset(self) -> None:
        self._chars = []
        self._last_key_at = None

    def _flush(self) -> typing.Optional[str]:
        text = "".join(self._chars).strip()
        self.reset()
        return text or None
