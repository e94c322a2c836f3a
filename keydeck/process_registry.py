# keydeck/process_registry.py

import asyncio
import codecs
import logging
import os
import signal
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096
# An unterminated line longer than this is buffered as it stands.
MAX_PENDING_LINE = 64 * 1024


class CircularBuffer:
    """Fixed-capacity line buffer; pushing past capacity overwrites the oldest line."""

    def __init__(self, capacity: int = 10):
        if capacity < 1:
            raise ValueError("CircularBuffer capacity must be at least 1.")
        self.capacity = capacity
        self._slots: List[Optional[str]] = [None] * capacity
        self._index = 0

    def push(self, chunk: str, prefix: str = ''):
        """Appends each non-empty line of `chunk`, optionally prefixed."""
        for line in chunk.splitlines():
            if not line:
                continue
            self._slots[self._index] = prefix + line
            self._index = (self._index + 1) % self.capacity

    def get(self) -> List[str]:
        ordered = self._slots[self._index:] + self._slots[:self._index]
        return [line for line in ordered if line is not None]

    def __len__(self):
        return len(self.get())


@dataclass
class BackgroundProcess:
    process: asyncio.subprocess.Process
    label: str
    command: str
    buffer: CircularBuffer
    readers: List[asyncio.Task] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.process.pid


# (entry, returncode) -> awaitable, called after the entry is deregistered
ExitCallback = Callable[[BackgroundProcess, Optional[int]], Awaitable[None]]


class ProcessRegistry:
    """Tracks detached processes started by async actions and their output."""

    def __init__(self, log_buffer_lines: int = 100, summary_buffer_lines: int = 10,
                 on_process_exit: Optional[ExitCallback] = None):
        self.log_buffer = CircularBuffer(log_buffer_lines)
        self.summary_buffer_lines = summary_buffer_lines
        self.on_process_exit = on_process_exit
        self._running: Dict[int, BackgroundProcess] = {}
        self._watchers: Dict[int, asyncio.Task] = {}

    def __len__(self):
        return len(self._running)

    def running(self) -> List[BackgroundProcess]:
        return list(self._running.values())

    async def spawn(self, label: str, command: str, cwd: Optional[str] = None,
                    env: Optional[dict] = None, executable: Optional[str] = None) -> BackgroundProcess:
        process = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env,
            executable=executable,
            start_new_session=True,
        )
        entry = BackgroundProcess(process, label, command, CircularBuffer(self.summary_buffer_lines))
        entry.readers = [
            asyncio.create_task(self._pump(entry, process.stdout, f"[{label}] >> ")),
            asyncio.create_task(self._pump(entry, process.stderr, f"[{label}] !> ")),
        ]
        self._running[process.pid] = entry
        self._watchers[process.pid] = asyncio.create_task(self._wait(entry))
        logger.info(f"Background process started: '{label}' (pid {process.pid}): {command}")
        return entry

    async def _pump(self, entry: BackgroundProcess, stream, prefix: str):
        """Drains `stream` in chunks; lines end at \\n or \\r so progress bars are kept too."""
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        pending = ''
        while True:
            data = await stream.read(READ_CHUNK_SIZE)
            if not data:
                break
            text = pending + decoder.decode(data)
            cut = max(text.rfind('\n'), text.rfind('\r'))
            if cut >= 0:
                self._record(entry, text[:cut + 1], prefix)
                pending = text[cut + 1:]
            else:
                pending = text
            if len(pending) > MAX_PENDING_LINE:
                self._record(entry, pending, prefix)
                pending = ''
        pending += decoder.decode(b'', final=True)
        if pending:
            self._record(entry, pending, prefix)

    def _record(self, entry: BackgroundProcess, text: str, prefix: str):
        self.log_buffer.push(text, prefix)
        entry.buffer.push(text)

    async def _wait(self, entry: BackgroundProcess):
        returncode = await entry.process.wait()
        await asyncio.gather(*entry.readers, return_exceptions=True)
        self._running.pop(entry.pid, None)
        self._watchers.pop(entry.pid, None)
        logger.info(f"Background process '{entry.label}' (pid {entry.pid}) exited with {returncode}")
        if self.on_process_exit:
            try:
                await self.on_process_exit(entry, returncode)
            except Exception as e:
                logger.exception(f"Error in background exit handler for '{entry.label}': {e}")

    def kill(self, entry: BackgroundProcess):
        """Kills the process group of one background entry."""
        try:
            os.killpg(entry.pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug(f"Background process {entry.pid} already gone.")
        except PermissionError:
            entry.process.kill()

    def kill_all(self) -> int:
        """Force-kills every registered process and returns how many were signalled."""
        entries = self.running()
        for entry in entries:
            self.kill(entry)
        if entries:
            logger.warning(f"Killed {len(entries)} background process(es).")
        return len(entries)
