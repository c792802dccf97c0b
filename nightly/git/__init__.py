"""Git queries: tags, HEAD, worktree checkout."""

from .repository import (
    GitError,
    Repository,
    TagRef,
    TagResolutionError,
    pick_previous_tag,
    resolve_previous_tag,
)

__all__ = [
    "GitError",
    "Repository",
    "TagRef",
    "TagResolutionError",
    "pick_previous_tag",
    "resolve_previous_tag",
]
