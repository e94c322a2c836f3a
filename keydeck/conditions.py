# keydeck/conditions.py
#
# Ready-made predicates for `Item.condition(...)`. Each helper returns a
# zero-argument callable so it is re-evaluated on every menu render.

import logging
import os
import shutil
import subprocess
from typing import Callable, Dict

from keydeck.prompt_engine import format_confirm

logger = logging.getLogger(__name__)

Condition = Callable[[], bool]


def env_exists(name: str) -> Condition:
    return lambda: bool(os.environ.get(name))


def env_equals(name: str, value: str) -> Condition:
    return lambda: os.environ.get(name) == value


def file_exists(path: str) -> Condition:
    return lambda: os.path.exists(path)


def command_exists(command: str) -> Condition:
    return lambda: shutil.which(command) is not None


def command_succeeds(command: str, timeout: float = 5.0) -> Condition:
    def _check() -> bool:
        try:
            result = subprocess.run(
                command, shell=True, timeout=timeout,
                stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
            )
            return result.returncode == 0
        except subprocess.TimeoutExpired:
            logger.warning(f"Condition command '{command}' timed out after {timeout}s.")
            return False
    return _check


def not_(condition: Condition) -> Condition:
    return lambda: not condition()


def and_(*conditions: Condition) -> Condition:
    return lambda: all(condition() for condition in conditions)


def or_(*conditions: Condition) -> Condition:
    return lambda: any(condition() for condition in conditions)


def values_match(expected: Dict[str, str]) -> Callable[[Dict[str, str]], bool]:
    """Wizard `when` predicate: every expected name must equal the collected value."""
    wanted = {
        name: format_confirm(value) if isinstance(value, bool) else str(value)
        for name, value in expected.items()
    }
    return lambda values: all(values.get(name) == value for name, value in wanted.items())


_CONFIG_HELPERS = {
    'env_exists': env_exists,
    'env_equals': lambda args: env_equals(*args),
    'file_exists': file_exists,
    'command_exists': command_exists,
    'command_succeeds': command_succeeds,
}


def from_config(spec) -> Condition:
    """
    Builds a condition from its data-file form, e.g.

        {"file_exists": "Makefile"}
        {"env_equals": ["STAGE", "dev"]}
        {"not": {"command_exists": "docker"}}
        {"all": [{...}, {...}]}   {"any": [{...}, {...}]}
    """
    if callable(spec):
        return spec
    if isinstance(spec, bool):
        return lambda: spec
    if not isinstance(spec, dict) or len(spec) != 1:
        raise ValueError(f"A condition must be a mapping with exactly one key, got: {spec!r}")

    (name, argument), = spec.items()
    if name == 'not':
        return not_(from_config(argument))
    if name == 'all':
        return and_(*[from_config(item) for item in argument])
    if name == 'any':
        return or_(*[from_config(item) for item in argument])
    if name not in _CONFIG_HELPERS:
        raise ValueError(f"Unknown condition '{name}'. Known: {', '.join(sorted(list(_CONFIG_HELPERS) + ['not', 'all', 'any']))}")
    return _CONFIG_HELPERS[name](argument)
