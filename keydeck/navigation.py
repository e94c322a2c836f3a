# keydeck/navigation.py

import logging
from typing import Callable, List, Optional

from keydeck.menu_node import MenuNode

logger = logging.getLogger(__name__)

BREADCRUMB_SEPARATOR = ' > '

# (label, description, parent) -> MenuNode
NodeFactory = Callable[[str, str, MenuNode], MenuNode]


def default_node_factory(label: str, description: str, parent: MenuNode) -> MenuNode:
    return MenuNode(label, description, parent=parent)


class NavigationStack:
    """The current menu node plus the ancestors leading to it."""

    def __init__(self, root: MenuNode, node_factory: Optional[NodeFactory] = None):
        self.root = root
        self.current = root
        self.ancestors: List[MenuNode] = []
        self._node_factory = node_factory or default_node_factory

    @property
    def depth(self) -> int:
        return len(self.ancestors)

    def push(self, label: str, description: str = '', exclude=None) -> MenuNode:
        node = self._node_factory(label, description, self.current)
        if exclude is not None:
            node.persistent_items = [item for item in node.persistent_items if item is not exclude]
        self.ancestors.append(self.current)
        self.current = node
        logger.debug(f"Navigation push: '{label}' (depth {self.depth})")
        return node

    def pop(self) -> MenuNode:
        if self.ancestors:
            self.current = self.ancestors.pop()
            logger.debug(f"Navigation pop: back to '{self.current.label}' (depth {self.depth})")
        return self.current

    def breadcrumb(self) -> list:
        """prompt_toolkit fragments: ancestors in parent style, then the current node."""
        crumbs = self.current.colors.get('breadcrumbs', {})
        fragments = []
        for node in self.ancestors:
            fragments.append((f"bold {crumbs.get('parents', '')}".strip(), node.label))
            fragments.append((f"bold {crumbs.get('separator', '')}".strip(), BREADCRUMB_SEPARATOR))
        fragments.append((f"bold {crumbs.get('current', '')}".strip(), self.current.label))
        if self.current.description:
            fragments.append(('', ': '))
            fragments.append((crumbs.get('current_description', ''), self.current.description))
        return fragments
