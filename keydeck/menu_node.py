# --- API DOCUMENTATION for keydeck/menu_node.py ---
#
# **Purpose:** One level of the menu tree. A MenuNode owns its items, the
# persistent items it inherited (plus any it declares), display options and
# the working directory commands run in. Configuration files receive the
# root node and call its builder methods.
#
# **Public Classes:**
#
# class MenuNode:
#     def action(self, label, persist=False) -> Action
#     def category(self, label, persist=False) -> Category
#     def options(self, **options) -> MenuNode
#     def cwd(self, directory) -> MenuNode
#     def template(self, name) -> Action
#     def get_template(self, name) -> Optional[Action]
#     def keymap(self, search_query=None) -> Dict[str, Item]
#
# **Key Global Constants/Variables:**
#   DEFAULT_MENU_OPTIONS: Display/behavior defaults for a root node.
#
# --- END API DOCUMENTATION ---

import copy
import logging
import os
from typing import Dict, List, Optional

from keydeck.action import Action
from keydeck.config_handler import merge_configs
from keydeck.items import Category, Item
from keydeck.key_assigner import assign_keys

logger = logging.getLogger(__name__)

DEFAULT_MENU_OPTIONS = {
    'inherit_options': True,
    'use_current_shell': False,
    'colors': {
        'breadcrumbs': {
            'current': 'ansiblue',
            'current_description': 'ansiwhite',
            'parents': 'ansiwhite',
            'separator': 'ansiwhite',
        },
        'keys': {
            'matching': 'ansigreen',
            'not_matching': 'ansired',
        },
        'category_arrows': 'ansiwhite',
        'extra_commands': 'ansiyellow',
    },
}


class MenuNode:
    def __init__(self, label: str = '', description: str = '', parent: Optional['MenuNode'] = None,
                 defaults: Optional[dict] = None):
        self.label = label
        self.description = description
        self.id: Optional[str] = None
        self.items: List[Item] = []
        self.persistent_items: List[Item] = []
        self.working_directory: Optional[str] = None
        self._overrides: dict = {}
        self._inherited_from: Optional['MenuNode'] = None
        self._defaults = defaults if defaults is not None else DEFAULT_MENU_OPTIONS

        if parent is not None:
            self.working_directory = parent.working_directory
            self.persistent_items = list(parent.persistent_items)
            self.templates = parent.templates
            self._defaults = parent._defaults
            if parent.effective_options.get('inherit_options'):
                self._inherited_from = parent
        else:
            self.templates: Dict[str, Action] = {}

    # --- Options ---

    @property
    def effective_options(self) -> dict:
        """Options in force for this node; inherited ones are read live from the parent."""
        base = self._inherited_from.effective_options if self._inherited_from else self._defaults
        if not self._overrides:
            return base
        return merge_configs(base, self._overrides)

    @property
    def colors(self) -> dict:
        return self.effective_options.get('colors', {})

    def options(self, **options):
        self._overrides = merge_configs(self._overrides, copy.deepcopy(options))
        return self

    # --- Builders ---

    def cwd(self, directory: str):
        self.working_directory = directory
        return self

    def action(self, label: str, persist: bool = False) -> Action:
        item = Action(label, owner=self)
        if self.effective_options.get('use_current_shell') and os.environ.get('SHELL'):
            item.shell_options(executable=os.environ['SHELL'])
        self._add(item, persist)
        return item

    def category(self, label: str, persist: bool = False) -> Category:
        item = Category(label)
        self._add(item, persist)
        return item

    def _add(self, item: Item, persist: bool):
        if persist:
            item.meta.persistent = True
            self.persistent_items.append(item)
        else:
            self.items.append(item)

    def template(self, name: str) -> Action:
        template = Action(f'[template:{name}]', owner=self)
        self.templates[name] = template
        return template

    def get_template(self, name: str) -> Optional[Action]:
        return self.templates.get(name)

    # --- Runtime helpers ---

    def resolve_path(self, path: str) -> str:
        path = os.path.expanduser(path)
        if os.path.isabs(path):
            return path
        return os.path.normpath(os.path.join(self.working_directory or os.getcwd(), path))

    def visible_items(self) -> List[Item]:
        return [item for item in self.items + self.persistent_items if item.is_visible()]

    @staticmethod
    def filter_items_by_search(items: List[Item], query: Optional[str]) -> List[Item]:
        if not query or not query.strip():
            return items
        lowered = query.strip().lower()
        return [
            item for item in items
            if lowered in item.meta.label.lower() or lowered in (item.meta.description or '').lower()
        ]

    def keymap(self, search_query: Optional[str] = None) -> Dict[str, Item]:
        items = self.filter_items_by_search(self.visible_items(), search_query)
        return assign_keys(items)

    def __repr__(self):
        return f"<MenuNode {self.label!r} items={len(self.items)} persistent={len(self.persistent_items)}>"
