# tests/test_history.py

from keydeck.history import HistoryLog


def test_newest_entry_comes_first():
    history = HistoryLog()
    history.add("Build", "make", "shell", 0)
    history.add("Test", "make test", "shell", 2)

    entries = history.entries()
    assert [entry.label for entry in entries] == ["Test", "Build"]
    assert entries[0].succeeded is False
    assert entries[1].succeeded is True


def test_history_is_bounded():
    history = HistoryLog(max_entries=3)
    for number in range(5):
        history.add(f"run {number}", f"echo {number}", "shell", 0)

    assert len(history) == 3
    assert [entry.label for entry in history.entries()] == ["run 4", "run 3", "run 2"]


def test_entries_limit_and_clear():
    history = HistoryLog()
    for number in range(4):
        history.add(f"run {number}", "true", "callback", 0)

    assert len(history.entries(limit=2)) == 2
    history.clear()
    assert history.entries() == []


def test_entries_returns_a_copy():
    history = HistoryLog()
    history.add("Build", "make", "shell", 0)
    history.entries().clear()
    assert len(history) == 1


def test_default_capacity_drops_the_oldest_entry():
    history = HistoryLog()
    for number in range(1, 52):
        history.add(f"run {number}", f"echo {number}", "shell", 0)

    entries = history.entries()
    assert len(entries) == 50
    assert entries[0].label == "run 51"
    assert entries[-1].label == "run 2"
