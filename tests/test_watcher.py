# tests/test_watcher.py

import asyncio
from types import SimpleNamespace

import pytest

from keydeck import watcher


@pytest.mark.asyncio
async def test_watch_interval_runs_until_stopped():
    stop = asyncio.Event()
    runs = []

    async def run_once():
        runs.append(1)
        if len(runs) == 3:
            stop.set()
        return 0

    assert await watcher.watch_interval(run_once, 0.01, stop) == 3


@pytest.mark.asyncio
async def test_watch_interval_with_preset_stop_does_nothing():
    stop = asyncio.Event()
    stop.set()

    async def run_once():
        raise AssertionError("should not run")

    assert await watcher.watch_interval(run_once, 0.01, stop) == 0


@pytest.mark.asyncio
async def test_handler_debounces_bursts_of_events(tmp_path):
    loop = asyncio.get_running_loop()
    changed = asyncio.Event()
    target = tmp_path / "app.py"
    target.write_text("")
    handler = watcher.DebouncedChangeHandler(loop, changed, 0.05, [str(target)])
    event = SimpleNamespace(is_directory=False, src_path=str(target), event_type="modified")

    handler.on_any_event(event)
    handler.on_any_event(event)
    await asyncio.sleep(0)
    assert not changed.is_set()

    await asyncio.wait_for(changed.wait(), timeout=1)
    handler.cancel()


@pytest.mark.asyncio
async def test_handler_ignores_unrelated_paths(tmp_path):
    loop = asyncio.get_running_loop()
    changed = asyncio.Event()
    src = tmp_path / "src"
    src.mkdir()
    handler = watcher.DebouncedChangeHandler(loop, changed, 0.01, [str(src)])

    assert handler._matches(str(src / "pkg" / "module.py")) is True
    assert handler._matches(str(tmp_path / "srcfile.py")) is False

    handler.on_any_event(SimpleNamespace(is_directory=True, src_path=str(src), event_type="modified"))
    handler.on_any_event(SimpleNamespace(is_directory=False, src_path=str(tmp_path / "other.txt"),
                                         event_type="created"))
    await asyncio.sleep(0.05)
    assert not changed.is_set()


@pytest.mark.asyncio
async def test_watch_files_reruns_on_change(tmp_path):
    target = tmp_path / "notes.txt"
    target.write_text("v1")
    stop = asyncio.Event()
    runs = []

    async def run_once():
        runs.append(1)
        if len(runs) == 1:
            # Give the observer a moment to start, then touch the file.
            await asyncio.sleep(0.2)
            target.write_text("v2")
        else:
            stop.set()
        return 0

    count = await asyncio.wait_for(watcher.watch_files(run_once, [str(target)], stop, debounce=0.05), timeout=10)
    assert count == 2


@pytest.mark.asyncio
async def test_watch_files_stops_on_event(tmp_path):
    stop = asyncio.Event()

    async def run_once():
        asyncio.get_running_loop().call_later(0.05, stop.set)
        return 0

    count = await asyncio.wait_for(watcher.watch_files(run_once, [str(tmp_path)], stop), timeout=10)
    assert count == 1
