# keydeck/key_input.py

import asyncio
import collections
import logging
from dataclasses import dataclass
from typing import Deque, Optional

from prompt_toolkit.input import create_input
from prompt_toolkit.keys import Keys

logger = logging.getLogger(__name__)

ESCAPE_FLUSH_SECONDS = 0.05

_NAMED_KEYS = {
    Keys.ControlM: 'return',
    Keys.ControlJ: 'return',
    Keys.ControlH: 'backspace',
    Keys.ControlI: 'tab',
    Keys.Escape: 'escape',
    Keys.Up: 'up',
    Keys.Down: 'down',
    Keys.Left: 'left',
    Keys.Right: 'right',
    Keys.Delete: 'delete',
}


@dataclass(frozen=True)
class KeyEvent:
    name: str
    sequence: str = ''
    ctrl: bool = False

    @property
    def is_printable(self) -> bool:
        return len(self.sequence) == 1 and self.sequence.isprintable() and not self.ctrl


def to_key_event(key_press) -> KeyEvent:
    """Converts a prompt_toolkit KeyPress into a KeyEvent."""
    key, data = key_press.key, key_press.data or ''
    if key in _NAMED_KEYS:
        return KeyEvent(_NAMED_KEYS[key], data)
    if isinstance(key, Keys):
        if key.value.startswith('c-') and len(key.value) == 3:
            return KeyEvent(key.value[2], data, ctrl=True)
        return KeyEvent(key.value, data)
    if key == ' ':
        return KeyEvent('space', ' ')
    return KeyEvent(key, key)


class TerminalKeySource:
    """Reads one key at a time from the terminal in raw mode."""

    def __init__(self, input_=None):
        self.input = input_ or create_input()
        # Presses parsed together (fast typing, paste) wait here for later reads.
        self.pending: Deque = collections.deque()

    async def read_key(self) -> KeyEvent:
        if not self.pending:
            await self._fill_pending()
        event = to_key_event(self.pending.popleft())
        logger.debug(f"Key read: {event}")
        return event

    async def _fill_pending(self):
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        flush_handle: Optional[asyncio.TimerHandle] = None

        def _deliver(key_presses):
            self.pending.extend(key_presses)
            if self.pending and not future.done():
                future.set_result(None)

        def _flush():
            _deliver(self.input.flush_keys())

        def _ready():
            nonlocal flush_handle
            _deliver(self.input.read_keys())
            # A lone escape byte stays in the parser until flushed.
            if not future.done():
                if flush_handle is not None:
                    flush_handle.cancel()
                flush_handle = loop.call_later(ESCAPE_FLUSH_SECONDS, _flush)

        with self.input.raw_mode():
            with self.input.attach(_ready):
                try:
                    await future
                finally:
                    if flush_handle is not None:
                        flush_handle.cancel()
