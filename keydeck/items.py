# --- API DOCUMENTATION for keydeck/items.py ---
#
# **Purpose:** The polymorphic menu entry model. An `Item` is either an
# `Action` (see keydeck/action.py) that runs something, or a `Category`
# that enters a sub-menu. Both share an `ItemMeta` record holding the
# common fields used by key assignment and rendering.
#
# **Public Classes:**
#
# class Item:
#     async def execute(self, session) -> None
#         """Runs the item against the interactive session (a MenuLoop)."""
#     def to_formatted(self, key: str, colors: dict) -> list
#         """prompt_toolkit style fragments for one menu line."""
#     def is_visible(self) -> bool
#         """Evaluates the condition; an exception hides the item."""
#
# class Category(Item):
#     def content(self, builder) -> Category
#     def from_directory(self, directory, **loader_options) -> Category
#     def from_array(self, items: list) -> Category
#
# Pipeline records shared with the executor: Task, ChainLink, WatchOptions,
# ActionPipeline.
#
# --- END API DOCUMENTATION ---

import abc
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from keydeck.config_loader import get_config_from_directory, populate_from_array

logger = logging.getLogger(__name__)

SHELL = 'shell'
CALLBACK = 'callback'


@dataclass
class ItemMeta:
    label: str
    description: str = ''
    key: Optional[str] = None
    # True enables the fallback scan, False disables it, a string is tried first.
    alternative_key: Union[bool, str] = True
    persistent: bool = False
    condition: Optional[Callable[[], bool]] = None
    help_text: Optional[str] = None


@dataclass
class Task:
    """One unit of work: a shell command string or an in-process callable."""
    kind: str
    payload: Any
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value, **options) -> 'Task':
        if isinstance(value, Task):
            return value
        if callable(value):
            return cls(CALLBACK, value, options)
        if isinstance(value, str):
            return cls(SHELL, value, options)
        raise TypeError(f"Expected a shell command string or a callable, got {type(value).__name__}")

    def describe(self) -> str:
        if self.kind == SHELL:
            return self.payload
        return getattr(self.payload, '__name__', repr(self.payload))


@dataclass
class ChainLink:
    task: Task
    run_on_error: bool = False


@dataclass
class WatchOptions:
    interval: Optional[float] = None
    files: Optional[List[str]] = None


@dataclass
class ActionPipeline:
    """Everything an Action has been configured to do, read by the executor."""
    shell: Optional[str] = None
    shell_options: Dict[str, Any] = field(default_factory=dict)
    callback: Optional[Callable] = None
    parallel: List[Task] = field(default_factory=list)
    prompts: list = field(default_factory=list)
    wizard: list = field(default_factory=list)
    confirm_message: Optional[str] = None
    confirm_default: bool = False
    before: List[Task] = field(default_factory=list)
    after: List[Task] = field(default_factory=list)
    chain: List[ChainLink] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    working_directory: Optional[str] = None
    capture: bool = False
    silent: bool = False
    notify: Optional[str] = None
    favorite: bool = False
    timeout: Optional[float] = None
    watch: Optional[WatchOptions] = None

    @property
    def is_async(self) -> bool:
        return bool(self.shell_options.get('async_'))


class Item(abc.ABC):
    def __init__(self, label: str, description: str = ''):
        self.meta = ItemMeta(label=label, description=description or '')

    # --- Builder methods shared by actions and categories ---

    def label(self, label: str):
        self.meta.label = label
        return self

    def description(self, description: str):
        self.meta.description = description
        return self

    def key(self, key: str):
        self.meta.key = key
        return self

    def alternative_key(self, key: Union[bool, str]):
        self.meta.alternative_key = key
        return self

    def condition(self, predicate: Callable[[], bool]):
        self.meta.condition = predicate
        return self

    def help(self, text: str):
        self.meta.help_text = text
        return self

    # --- Runtime ---

    def is_visible(self) -> bool:
        if self.meta.condition is None:
            return True
        try:
            return bool(self.meta.condition())
        except Exception as e:
            logger.warning(f"Condition for '{self.meta.label}' raised {e!r}; hiding item.")
            return False

    @property
    def is_favorite(self) -> bool:
        return False

    def detail_text(self) -> str:
        return self.meta.description

    def _label_fragments(self, key: str, colors: dict) -> list:
        label = self.meta.label
        keys = colors.get('keys', {})
        idx = label.lower().find(key.lower()) if key else -1
        if idx < 0:
            return [('bold', label)]
        key_color = keys.get('matching', 'ansigreen') if idx == 0 else keys.get('not_matching', 'ansired')
        fragments = [
            ('bold', label[:idx]),
            (f'bold {key_color}', label[idx:idx + 1]),
            ('bold', label[idx + 1:]),
        ]
        return [fragment for fragment in fragments if fragment[1]]

    def to_formatted(self, key: str, colors: dict) -> list:
        """Label with the matched key highlighted, followed by its detail text."""
        fragments = self._label_fragments(key, colors)
        detail = self.detail_text()
        if detail:
            fragments.append(('', f' : {detail}'))
        return fragments

    @abc.abstractmethod
    async def execute(self, session):
        """Runs the item against the interactive session."""

    def __repr__(self):
        return f"<{type(self).__name__} {self.meta.label!r}>"


class Category(Item):
    """An item whose action is to push a new menu node and fill it."""

    def __init__(self, label: str, description: str = '', builder: Optional[Callable] = None):
        super().__init__(label, description)
        self._builder = builder

    def content(self, builder: Callable):
        self._builder = builder
        return self

    def from_directory(self, directory: str, **loader_options):
        def _build(node):
            target = node.resolve_path(directory)
            node.cwd(target)
            configure = get_config_from_directory(target, **loader_options)
            if configure:
                return configure(node)
            logger.warning(f"No menu configuration found in '{directory}' for category '{self.meta.label}'.")
            return None

        self._builder = _build
        return self

    def from_array(self, items: list):
        def _build(node):
            populate_from_array(items, node)

        self._builder = _build
        return self

    def to_formatted(self, key: str, colors: dict) -> list:
        arrow_style = f"bold {colors.get('category_arrows', '')}".strip()
        fragments = self._label_fragments(key, colors)
        fragments.append((arrow_style, ' >> '))
        if self.meta.description:
            fragments.append(('', self.meta.description))
        return fragments

    async def execute(self, session):
        node = session.navigation.push(self.meta.label, self.meta.description, exclude=self)
        if self._builder is None:
            return
        logger.info(f"Entering category '{self.meta.label}'")
        result = self._builder(node)
        if inspect.isawaitable(result):
            await result
