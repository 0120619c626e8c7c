"""Pretty formatting utilities for CLI output."""

import shutil
import sys
from typing import IO, Callable, List, Optional

from ..stack import StackTree
from ..typing import CommitInfo

# Lists the commits between (parent, branch); None when they can't be loaded
CommitLoader = Callable[[str, str], Optional[List[CommitInfo]]]

def get_term_width() -> int:
    """Get terminal width, default to 80 if can't detect."""
    try:
        return shutil.get_terminal_size().columns
    except Exception:
        return 80

def header(text: str, use_emoji: bool = True, emoji: str = "📚") -> str:
    """Create a header with optional emoji."""
    width = min(get_term_width(), 80)
    h_line = "─" * (width - 2)
    v_line = "│"
    prefix = f"{emoji} " if use_emoji else ""
    pad = max(0, width - len(text) - len(prefix) - 3)

    result = [
        f"┌{h_line}┐",
        f"{v_line} {prefix}{text}{' ' * pad}{v_line}",
        f"└{h_line}┘"
    ]

    return "\n".join(result)

def branch_label(name: str, current_branch: Optional[str], is_root: bool) -> str:
    if name == current_branch:
        return f"● {name} (current)"
    if is_root:
        return f"○ {name} (base)"
    return f"○ {name}"

def render_tree(tree: StackTree, current_branch: Optional[str] = None,
                commits: Optional[CommitLoader] = None) -> List[str]:
    """Render a stack tree as lines, children indented under their parent."""
    lines: List[str] = []
    seen: set = set()

    def render_node(name: str, prefix: str, is_root: bool, parent: Optional[str], is_last: bool) -> None:
        if name in seen:
            return
        seen.add(name)
        lines.append(f"{prefix}{branch_label(name, current_branch, is_root)}")

        # Children hang below the connector of this node
        new_prefix = prefix
        if not is_root:
            new_prefix = prefix[:-3] + ("   " if is_last else "│  ")

        if commits is not None and parent is not None:
            listed = commits(parent, name)
            if listed is None:
                lines.append(f"{new_prefix}│   └─ (unable to load commits)")
            elif not listed:
                lines.append(f"{new_prefix}│   └─ (no commits)")
            else:
                for idx, commit in enumerate(listed):
                    connector = "└─" if idx == len(listed) - 1 else "├─"
                    lines.append(f"{new_prefix}│   {connector} {commit.hash[:7]} {commit.message}")

        children = tree.children.get(name, [])
        for i, child in enumerate(children):
            child_is_last = i == len(children) - 1
            child_prefix = "└─ " if child_is_last else "├─ "
            render_node(child, new_prefix + child_prefix, False, name, child_is_last)

    render_node(tree.root, "", True, None, True)

    for name in tree.detached:
        lines.append(f"{branch_label(name, current_branch, False)} (detached)")
    return lines

def print_header(text: str, use_emoji: bool = True, file: Optional[IO[str]] = None) -> None:
    """Print a header to file (default stdout)."""
    if file is None:
        file = sys.stdout
    print(header(text, use_emoji), file=file)
