# keydeck/placeholders.py

import re
from typing import Mapping

PLACEHOLDER_PATTERN = re.compile(r'\{\{\s*([\w.-]+)\s*\}\}')


def substitute(template: str, values: Mapping[str, str]) -> str:
    """
    Replaces every `{{name}}` token in `template` with `values[name]`.

    Whitespace inside the braces is tolerated. Tokens without a matching
    value are left exactly as written.
    """
    if not template or not values:
        return template

    def _replace(match):
        name = match.group(1)
        if name in values and values[name] is not None:
            return str(values[name])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def substitute_mapping(templates: Mapping[str, str], values: Mapping[str, str]) -> dict:
    """Applies `substitute` to every value of a mapping, returning a new dict."""
    return {key: substitute(str(value), values) for key, value in templates.items()}
