# --- API DOCUMENTATION for keydeck/config_loader.py ---
#
# **Purpose:** Finds and loads menu configuration files. Every loader returns
# a `configure(node)` callable that fills a MenuNode; nothing is built until
# that callable is invoked.
#
# Supported files, in discovery order:
#   .keydeck.py              -> module defining `configure(menu)`
#   .keydeck.json / .jsonc   -> list of item mappings (comments allowed)
#   .keydeck.yaml / .yml     -> same shape, read with yaml.safe_load
#   package.json             -> one action per npm/yarn script
#
# **Public Functions:**
#   get_init_config(file=None) -> Optional[configure]
#   get_config(path, **options) -> Optional[configure]
#   get_config_from_directory(directory, loader=None, **options) -> Optional[configure]
#   populate_from_array(items, node) -> None
#
# **Exceptions:**
#   ConfigurationError: a config file exists but cannot be turned into a menu.
#
# --- END API DOCUMENTATION ---

import importlib.util
import inspect
import logging
import os
import sys
from typing import Awaitable, Callable, Dict, List, Optional

from keydeck import conditions
from keydeck.config_handler import load_jsonc_file, load_yaml_file

logger = logging.getLogger(__name__)

Configure = Callable[[object], Optional[Awaitable[None]]]

PYTHON_CONFIG = '.keydeck.py'
JSON_CONFIGS = ('.keydeck.json', '.keydeck.jsonc')
YAML_CONFIGS = ('.keydeck.yaml', '.keydeck.yml')
PACKAGE_JSON = 'package.json'
CONFIG_FILENAMES = (PYTHON_CONFIG,) + JSON_CONFIGS + YAML_CONFIGS + (PACKAGE_JSON,)

CATEGORY_KEYS = ('from', 'from_directory', 'fromArray', 'from_array', 'content')
KEY_ALIASES = {
    'from': 'from_directory',
    'in': 'in_directory',
    'fromArray': 'from_array',
    'onError': 'on_error',
    'requireConfirmation': 'require_confirmation',
    'alternativeKey': 'alternative_key',
    'shellOptions': 'shell_options',
    'watchFiles': 'watch_files',
    'fromTemplate': 'from_template',
}
LIST_ARGUMENT_METHODS = ('prompts', 'parallel', 'watch_files', 'wizard', 'from_array')
FLAG_METHODS = ('capture', 'silent', 'favorite')
HOOK_METHODS = ('before', 'after', 'then', 'on_error')
STRUCTURAL_KEYS = ('label', 'persistent')


class ConfigurationError(Exception):
    """A menu configuration file was found but could not be loaded."""
    pass


class UnknownItemKey(Exception):
    pass


# --- Data (JSON / YAML) configurations ---

def _call_hook(method, value):
    if isinstance(value, list):
        if len(value) == 2 and isinstance(value[0], str) and isinstance(value[1], dict):
            method(value[0], **value[1])
        else:
            for entry in value:
                method(entry)
    elif isinstance(value, dict):
        options = dict(value)
        method(options.pop('command'), **options)
    else:
        method(value)


def _apply(item, raw_key: str, value):
    name = KEY_ALIASES.get(raw_key, raw_key)

    if name == 'async':
        item.shell_options(async_=bool(value))
        return
    if name == 'condition':
        item.condition(conditions.from_config(value))
        return
    if name == 'content':
        if not isinstance(value, list):
            raise ConfigurationError(f"'content' of category '{item.meta.label}' must be a list of items in data files.")
        item.from_array(value)
        return

    method = getattr(item, name, None) if not name.startswith('_') else None
    if method is None or not callable(method):
        raise UnknownItemKey(name)

    if name in FLAG_METHODS:
        if value:
            method()
    elif name == 'watch':
        if value is True:
            method()
        elif value:
            method(float(value))
    elif name in HOOK_METHODS:
        _call_hook(method, value)
    elif name == 'shell_options':
        method(**value)
    elif name == 'env' and isinstance(value, dict):
        method(value)
    elif name == 'shell' and isinstance(value, dict):
        options = dict(value)
        method(options.pop('command'), **options)
    elif isinstance(value, list) and name not in LIST_ARGUMENT_METHODS:
        method(*value)
    else:
        method(value)


def populate_from_array(items: List[dict], node) -> None:
    """Builds actions and categories on `node` from a list of item mappings."""
    if not isinstance(items, list):
        raise ConfigurationError(f"Expected a list of menu items, got {type(items).__name__}.")

    unknown_keys = set()
    for data in items:
        if not isinstance(data, dict) or 'label' not in data:
            raise ConfigurationError(f"Each menu item must be a mapping with a 'label', got: {data!r}")
        persist = bool(data.get('persistent', False))
        if any(key in data for key in CATEGORY_KEYS):
            item = node.category(str(data['label']), persist)
        else:
            item = node.action(str(data['label']), persist)

        for raw_key, value in data.items():
            if raw_key in STRUCTURAL_KEYS:
                continue
            try:
                _apply(item, raw_key, value)
            except UnknownItemKey:
                unknown_keys.add(raw_key)
                logger.warning(f"Unknown key '{raw_key}' on menu item '{data['label']}'; ignored.")
            except (TypeError, ValueError, KeyError, LookupError) as e:
                raise ConfigurationError(f"Invalid '{raw_key}' on menu item '{data['label']}': {e}") from e

    if unknown_keys:
        print(f"⚠️ Warning: ignored unknown menu item key(s): {', '.join(sorted(unknown_keys))}", file=sys.stderr)


def _data_configure(data, source: str) -> Configure:
    if isinstance(data, dict):
        options = data.get('options', {})
        items = data.get('items', [])
    else:
        options, items = {}, data

    def configure(node):
        if options:
            node.options(**options)
        populate_from_array(items or [], node)
        logger.info(f"Menu populated from {source}")

    return configure


def load_json_config(path: str, **options) -> Configure:
    data = load_jsonc_file(path)
    if data is None:
        raise ConfigurationError(f"Could not parse JSON menu configuration at '{path}'.")
    return _with_more(_data_configure(data, path), options)


def load_yaml_config(path: str, **options) -> Configure:
    data = load_yaml_file(path)
    if data is None:
        raise ConfigurationError(f"Could not parse YAML menu configuration at '{path}'.")
    return _with_more(_data_configure(data, path), options)


# --- Python configurations ---

def load_python_config(path: str, **options) -> Configure:
    module_name = f"keydeck_config_{abs(hash(os.path.abspath(path)))}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"Cannot import menu configuration from '{path}'.")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        logger.error(f"Error importing {path}: {e}", exc_info=True)
        raise ConfigurationError(f"Error while importing '{path}': {e}") from e

    configure = getattr(module, 'configure', None)
    if not callable(configure):
        raise ConfigurationError(f"'{path}' must define a function `configure(menu)`.")
    logger.info(f"Loaded Python menu configuration from {path}")
    return _with_more(configure, options)


# --- package.json ---

def load_package_json(path: str, aliases: Optional[Dict[str, str]] = None, include: Optional[List[str]] = None,
                      exclude: Optional[List[str]] = None, yarn: bool = False, group_by_prefix: bool = True,
                      use_script_comments: bool = True, **options) -> Configure:
    package = load_jsonc_file(path)
    if not isinstance(package, dict):
        raise ConfigurationError(f"Could not parse '{path}' as a package.json file.")

    aliases = aliases or {}
    include = include or []
    exclude = exclude or []
    directory = os.path.dirname(os.path.abspath(path))
    use_yarn = yarn or os.path.exists(os.path.join(directory, 'yarn.lock'))
    packager = 'yarn' if use_yarn else 'npm'
    descriptions = dict(package.get('scriptsComments', {})) if use_script_comments else {}

    grouped: Dict[str, Dict[str, str]] = {}
    ungrouped: Dict[str, str] = {}
    for script, body in (package.get('scripts') or {}).items():
        if include and script not in include:
            continue
        if script in exclude:
            continue
        if group_by_prefix and ':' in script:
            prefix, rest = script.split(':', 1)
            grouped.setdefault(prefix, {})[rest] = body
        else:
            ungrouped[script] = body

    def _script_action(node, label: str, script: str, body: str):
        item = node.action(label).description(descriptions.get(script, body)).shell(f"{packager} run {script}")
        if script in aliases:
            item.key(aliases[script])

    def _packager_commands(node):
        node.action('install').prompt('Package(s) to install').shell(
            f"{'yarn add' if use_yarn else 'npm install'} {{{{input}}}}")
        node.action('remove').prompt('Package(s) to remove').shell(
            f"{'yarn remove' if use_yarn else 'npm remove'} {{{{input}}}}")
        node.action('login').shell(f"{packager} login")
        node.action('publish').require_confirmation(f"Publish this package with {packager}?").shell(f"{packager} publish")

    def configure(node):
        node.cwd(directory)
        for script, body in ungrouped.items():
            if script in grouped:
                continue
            _script_action(node, script, script, body)
        for prefix, scripts in grouped.items():
            def _content(child, prefix=prefix, scripts=scripts):
                for name, body in scripts.items():
                    _script_action(child, name, f"{prefix}:{name}", body)
            node.category(prefix).description(f"{prefix} scripts").content(_content)
        node.category(packager, True).description(f"Useful {packager} commands.").content(_packager_commands)
        logger.info(f"Menu populated from {len(ungrouped) + sum(len(s) for s in grouped.values())} script(s) in {path}")

    return _with_more(configure, options)


# --- Discovery ---

def _with_more(configure: Configure, options: dict) -> Configure:
    more = options.get('more')
    if not more:
        return configure

    async def _configure(node):
        result = configure(node)
        if inspect.isawaitable(result):
            await result
        result = more(node)
        if inspect.isawaitable(result):
            await result

    return _configure


def _loader_for(path: str):
    name = os.path.basename(path)
    if name.endswith('.py'):
        return load_python_config
    if name.endswith(PACKAGE_JSON):
        return load_package_json
    if name.endswith(('.json', '.jsonc')):
        return load_json_config
    if name.endswith(('.yaml', '.yml')):
        return load_yaml_config
    return None


def get_config(path: str, **options) -> Optional[Configure]:
    """Returns the loader result for `path`, or None if it does not exist or has no loader."""
    if not os.path.isfile(path):
        return None
    loader = _loader_for(path)
    if loader is None:
        logger.warning(f"No loader for configuration file '{path}'.")
        return None
    return loader(path, **options)


def get_config_from_directory(directory: str, loader: Optional[str] = None, **options) -> Optional[Configure]:
    if loader:
        return get_config(os.path.join(directory, loader), **options)
    for filename in CONFIG_FILENAMES:
        configure = get_config(os.path.join(directory, filename), **options)
        if configure:
            return configure
    return None


def get_init_config(file: Optional[str] = None, directory: Optional[str] = None) -> Optional[Configure]:
    """
    Locates the configuration for a new session: an explicit file, else the
    current directory, else a .keydeck.py in the user's home directory.
    """
    if file:
        return get_config(os.path.abspath(os.path.expanduser(file)))
    configure = get_config_from_directory(directory or os.getcwd())
    if configure:
        return configure
    return get_config(os.path.join(os.path.expanduser('~'), PYTHON_CONFIG))
