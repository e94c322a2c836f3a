# keydeck/watcher.py

import asyncio
import logging
import os
from typing import Awaitable, Callable, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

RunOnce = Callable[[], Awaitable[Optional[int]]]


async def _wait_or_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Sleeps up to `timeout` seconds; returns True if the stop event fired first."""
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        return False


async def watch_interval(run_once: RunOnce, interval: float, stop_event: asyncio.Event) -> int:
    """Runs immediately, then once per `interval` seconds until stopped. Returns the run count."""
    runs = 0
    while not stop_event.is_set():
        await run_once()
        runs += 1
        if await _wait_or_stop(stop_event, interval):
            break
    logger.info(f"Interval watch stopped after {runs} run(s).")
    return runs


class DebouncedChangeHandler(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread to the event loop, debounced."""

    def __init__(self, loop: asyncio.AbstractEventLoop, changed: asyncio.Event, debounce: float,
                 paths: List[str]):
        self.loop = loop
        self.changed = changed
        self.debounce = debounce
        self.files = {path for path in paths if not os.path.isdir(path)}
        self.directories = [path.rstrip(os.sep) + os.sep for path in paths if os.path.isdir(path)]
        self._pending: Optional[asyncio.TimerHandle] = None

    def on_any_event(self, event):
        if event.is_directory:
            return
        paths = {os.path.abspath(event.src_path)}
        dest = getattr(event, 'dest_path', None)
        if dest:
            paths.add(os.path.abspath(dest))
        if not any(self._matches(path) for path in paths):
            return
        logger.debug(f"File change detected: {event.event_type} {event.src_path}")
        self.loop.call_soon_threadsafe(self._schedule)

    def _matches(self, path: str) -> bool:
        return path in self.files or any(path.startswith(directory) for directory in self.directories)

    def _schedule(self):
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self.loop.call_later(self.debounce, self.changed.set)

    def cancel(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None


def _schedule_paths(observer: Observer, handler: DebouncedChangeHandler, paths: List[str]):
    directories = set()
    for path in paths:
        if os.path.isdir(path):
            observer.schedule(handler, path, recursive=True)
        else:
            directories.add(os.path.dirname(path) or '.')
    for directory in directories:
        observer.schedule(handler, directory, recursive=False)


async def watch_files(run_once: RunOnce, paths: List[str], stop_event: asyncio.Event,
                      debounce: float = 0.3) -> int:
    """
    Runs immediately, then again after each (debounced) change to `paths`.

    Directories are watched recursively; plain files are matched by path.
    The observer thread is always stopped and joined before returning.
    """
    loop = asyncio.get_running_loop()
    absolute = [os.path.abspath(path) for path in paths]
    changed = asyncio.Event()
    handler = DebouncedChangeHandler(loop, changed, debounce, absolute)
    observer = Observer()
    observer.daemon = True
    _schedule_paths(observer, handler, absolute)
    observer.start()
    logger.info(f"File watch started on: {', '.join(absolute)}")

    runs = 0
    try:
        await run_once()
        runs += 1
        while not stop_event.is_set():
            stop_task = asyncio.ensure_future(stop_event.wait())
            change_task = asyncio.ensure_future(changed.wait())
            done, pending = await asyncio.wait({stop_task, change_task}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if stop_task in done:
                break
            changed.clear()
            await run_once()
            runs += 1
    finally:
        handler.cancel()
        observer.stop()
        await asyncio.to_thread(observer.join, 2.0)
        logger.info(f"File watch stopped after {runs} run(s).")
    return runs
