"""
Tree Printer

Renders the parent/child structure of a KD-tree as box-drawing text, for
debugging:

    └── depth=0 id=(...)
        ├── [left] depth=1 id=(...)
        └── [right] depth=1 id=(...)

Diagnostic only; nothing depends on the exact layout.
"""

from typing import List, Tuple


EMPTY_TREE = "Tree has no nodes."


def _describe(node) -> str:
    label = f"depth={node.depth} id={node.point}"
    parent = node.parent
    if parent is None:
        return label
    side = "right" if parent.greater is node else "left"
    return f"[{side}] {label}"


def render_tree(tree) -> str:
    """
    Render a KdTree as an indented tree.

    Args:
        tree: KdTree to render

    Returns:
        Multi-line string, one node per line
    """
    if tree.root is None:
        return EMPTY_TREE

    lines: List[str] = []
    # (node, prefix, is_tail)
    stack: List[Tuple[object, str, bool]] = [(tree.root, "", True)]
    while stack:
        node, prefix, is_tail = stack.pop()
        lines.append(f"{prefix}{'└── ' if is_tail else '├── '}{_describe(node)}")

        children = [c for c in (node.lesser, node.greater) if c is not None]
        child_prefix = prefix + ("    " if is_tail else "│   ")
        for i in reversed(range(len(children))):
            stack.append((children[i], child_prefix, i == len(children) - 1))

    return "\n".join(lines) + "\n"
