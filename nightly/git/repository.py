"""Git repository queries used by a nightly run.

The run needs three things from git: the list of tags with their dates, the
HEAD commit, and a checkout of the chosen tag. All operations return Result
types.

Usage:
    repo = Repository(Path("."))
    match resolve_previous_tag(repo):
        case Ok(tag):
            print(f"building against {tag}")
        case Err(e):
            print(e.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from nightly.core.result import Err, Ok, Result
from nightly.platform.process import ProcessError
from nightly.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 10 * 60.0

# %09 is a tab; *objectname is the peeled commit of an annotated tag.
_TAG_FORMAT = "%(refname:short)%09%(objectname)%09%(*objectname)%09%(creatordate:unix)"

__all__ = [
    "GitError",
    "Repository",
    "TagRef",
    "TagResolutionError",
    "pick_previous_tag",
    "resolve_previous_tag",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class TagResolutionError:
    """No usable baseline tag. Fatal for the whole run."""

    kind: Literal["no_tags", "unknown_tag", "git_failed"]
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class TagRef:
    """A tag and the commit it points at.

    Attributes:
        name: Tag name (e.g. "0.91.0")
        commit: Full sha of the tagged commit (peeled for annotated tags)
        created: Creator date as a unix timestamp
    """

    name: str
    commit: str
    created: int


class Repository:
    """A local git checkout.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a git repository (.git dir, or file for worktrees)."""
        return (self.path / ".git").exists()

    def head(self) -> Result[str, GitError]:
        """Full sha of HEAD."""
        result = self._run(["rev-parse", "HEAD"])
        match result:
            case Err(e):
                return Err(
                    GitError(
                        command="rev-parse HEAD",
                        message=e.stderr.strip() or "rev-parse failed",
                        returncode=e.returncode,
                    )
                )
            case Ok(stdout):
                return Ok(stdout.strip())

    def tags(self) -> Result[list[TagRef], GitError]:
        """All tags, newest first by creator date."""
        result = self._run(
            ["for-each-ref", "--sort=-creatordate", f"--format={_TAG_FORMAT}", "refs/tags"]
        )
        match result:
            case Err(e):
                return Err(
                    GitError(
                        command="for-each-ref refs/tags",
                        message=e.stderr.strip() or "listing tags failed",
                        returncode=e.returncode,
                    )
                )
            case Ok(stdout):
                return Ok(self._parse_tags(stdout))

    def add_worktree(self, dest: Path, ref: str) -> Result[Path, GitError]:
        """Check out ref (detached) into dest, with submodules.

        An existing worktree at dest is replaced so a rerun starts clean.
        """
        if dest.exists():
            self._run(["worktree", "remove", "--force", str(dest)])

        result = self._run(["worktree", "add", "--force", "--detach", str(dest), ref])
        if isinstance(result, Err):
            return Err(
                GitError(
                    command=f"worktree add {ref}",
                    message=result.error.stderr.strip() or "worktree add failed",
                    returncode=result.error.returncode,
                )
            )

        sub = run_process(
            ["git", "-C", str(dest), "submodule", "update", "--init", "--recursive"],
            cwd=dest,
            timeout=_GIT_NETWORK_TIMEOUT_SECONDS,
        )
        if isinstance(sub, Err):
            return Err(
                GitError(
                    command="submodule update --init --recursive",
                    message=sub.error.stderr.strip() or "submodule update failed",
                    returncode=sub.error.returncode,
                )
            )
        return Ok(dest)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if args and args[0] == "worktree" else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    def _parse_tags(self, output: str) -> list[TagRef]:
        tags: list[TagRef] = []
        for line in output.splitlines():
            parts = line.split("\t")
            if len(parts) != 4 or not parts[0]:
                continue
            name, obj, peeled, created = parts
            try:
                stamp = int(created)
            except ValueError:
                stamp = 0
            tags.append(TagRef(name=name, commit=peeled or obj, created=stamp))
        return tags


def pick_previous_tag(tags: list[TagRef], head: str) -> str | None:
    """Pick the baseline tag for a nightly build.

    If HEAD is tagged, return the newest tag that does not point at HEAD and
    ranks strictly below HEAD's newest tag. Otherwise return the newest tag.
    Tags rank by creator date, ties broken by name.
    """
    ordered = sorted(tags, key=lambda t: (t.created, t.name), reverse=True)
    head_tags = [t for t in ordered if t.commit == head]
    if not head_tags:
        return ordered[0].name if ordered else None

    cutoff = max((t.created, t.name) for t in head_tags)
    for tag in ordered:
        if tag.commit != head and (tag.created, tag.name) < cutoff:
            return tag.name
    return None


def resolve_previous_tag(
    repo: Repository, *, override: str | None = None
) -> Result[str, TagResolutionError]:
    """Resolve the tag a nightly run republishes against.

    Args:
        repo: The source repository (full history required).
        override: Use this tag instead of resolving; it must exist.
    """
    tags = repo.tags()
    if isinstance(tags, Err):
        return Err(
            TagResolutionError(
                kind="git_failed",
                message=f"could not list tags: {tags.error.message}",
                hint="clone with full history (fetch-depth: 0)",
            )
        )

    if override is not None:
        if any(t.name == override for t in tags.value):
            return Ok(override)
        return Err(
            TagResolutionError(
                kind="unknown_tag",
                message=f"tag not found: {override}",
                hint="git fetch --tags",
            )
        )

    if not tags.value:
        return Err(
            TagResolutionError(
                kind="no_tags",
                message=f"no tags in {repo.path}",
                hint="a nightly build needs at least one release tag as its baseline",
            )
        )

    head = repo.head()
    if isinstance(head, Err):
        return Err(
            TagResolutionError(
                kind="git_failed", message=f"could not read HEAD: {head.error.message}"
            )
        )

    tag = pick_previous_tag(tags.value, head.value)
    if tag is None:
        return Err(
            TagResolutionError(
                kind="no_tags",
                message="the only tags in the repository point at HEAD",
                hint="pass --tag to build against HEAD's tag",
            )
        )
    return Ok(tag)
