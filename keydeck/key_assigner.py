# keydeck/key_assigner.py

import logging
import string
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

# Keys bound to built-in modes (help and search); never handed to items.
RESERVED_KEYS = ('?', '/')


def _usable(char: str, claimed: set) -> bool:
    return bool(char) and not char.isspace() and char not in RESERVED_KEYS and char.lower() not in claimed


def _preferred_key(item) -> str:
    if item.meta.key:
        return item.meta.key.lower()
    return item.meta.label[:1].lower()


def _fallback_key(item, claimed: set) -> Optional[str]:
    alternative = item.meta.alternative_key
    if alternative is False:
        return None
    if isinstance(alternative, str) and alternative and _usable(alternative.lower(), claimed):
        return alternative.lower()
    for char in item.meta.label[1:]:
        if _usable(char, claimed):
            return char
    for char in string.ascii_lowercase:
        if char not in claimed:
            return char
    return None


def assign_keys(items: Iterable) -> Dict[str, object]:
    """
    Maps single-character keys to items.

    Items with an explicit key claim first, then items keyed by the first
    letter of their label; within each group the first claimer wins. Items
    that lost their preferred key try their alternative key, the rest of
    their label, then the alphabet. The result never maps two keys to the
    same item, and the same input always yields the same mapping.
    """
    items = list(items)
    keymap: Dict[str, object] = {}
    claimed: set = set()
    deferred: List = []

    explicit = [item for item in items if item.meta.key]
    derived = [item for item in items if not item.meta.key]
    for item in explicit + derived:
        key = _preferred_key(item)
        if _usable(key, claimed):
            keymap[key] = item
            claimed.add(key)
        else:
            deferred.append(item)

    # Keep fallback resolution in the caller's order, not claim order.
    deferred.sort(key=items.index)
    for item in deferred:
        key = _fallback_key(item, claimed)
        if key is None:
            logger.debug(f"No key available for '{item.meta.label}'; item is unreachable.")
            continue
        keymap[key] = item
        claimed.add(key.lower())
    return keymap


def resolve_key(keymap: Dict[str, object], pressed: str):
    """Looks up a pressed character, ignoring case."""
    if not pressed:
        return None
    if pressed in keymap:
        return keymap[pressed]
    lowered = pressed.lower()
    for key, item in keymap.items():
        if key.lower() == lowered:
            return item
    return None
