"""File-set composition.

``compose`` merges a batch of :class:`FileArtifact` objects into a
:class:`ProjectTree` and returns the updated tree and aggregator index
without mutating its inputs.  ``FileSetComposer`` wraps it with the shared
state of a running session: per-path claims for concurrent writers, an
optional async writer that persists changed files, and a post-write hook.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .hooks import HookResult
from .models import (
    AggregatorIndex,
    ArtifactKind,
    FileArtifact,
    MergeStrategy,
    ProjectTree,
    entry_marker,
)

Writer = Callable[[str, str], Awaitable[None]]
PostWriteHook = Callable[[str], Awaitable[HookResult]]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ComposeConflict(str, Enum):
    PATH_CONFLICT = "PathConflict"


class ComposeError(Exception):
    """Raised when artifacts cannot be merged into the tree.

    Attributes:
        conflict: The conflict category.
        path: The contested path.
        parties: Descriptions of the two conflicting writers.
    """

    def __init__(self, conflict: ComposeConflict, path: str, first: str, second: str) -> None:
        self.conflict = conflict
        self.path = path
        self.parties = (first, second)
        super().__init__(f"{conflict.value} on {path}: {first} vs {second}")


def describe(artifact: FileArtifact) -> str:
    """Short human-readable identity of an artifact for error messages."""
    label = artifact.entry_key or artifact.group or artifact.path
    return f"{artifact.kind.value} artifact ({label})"


# ---------------------------------------------------------------------------
# Pure composition
# ---------------------------------------------------------------------------

class ComposeResult(BaseModel):
    """Outcome of composing one batch of artifacts."""
    tree: ProjectTree
    index: AggregatorIndex
    written: list[str] = Field(default_factory=list, description="Paths whose content changed")
    skipped: list[FileArtifact] = Field(
        default_factory=list, description="Artifacts that caused no mutation"
    )
    hook_results: list[HookResult] = Field(default_factory=list)


def check_kinds(artifacts: list[FileArtifact], tree: ProjectTree) -> None:
    """Raise ``ComposeError`` if any path would be written with two kinds."""
    first_by_path: dict[str, FileArtifact] = {}
    for artifact in artifacts:
        first = first_by_path.setdefault(artifact.path, artifact)
        if first.kind != artifact.kind:
            raise ComposeError(
                ComposeConflict.PATH_CONFLICT, artifact.path, describe(first), describe(artifact)
            )
        recorded: Optional[ArtifactKind] = tree.kinds.get(artifact.path)
        if recorded is not None and recorded != artifact.kind:
            raise ComposeError(
                ComposeConflict.PATH_CONFLICT,
                artifact.path,
                f"existing {recorded.value} file",
                describe(artifact),
            )


def insert_before_anchor(content: str, fragment: str, anchor: str) -> str:
    """Insert *fragment* before the first line equal to *anchor*, else append it."""
    if fragment and not fragment.endswith("\n"):
        fragment += "\n"
    lines = content.splitlines(keepends=True)
    for position, line in enumerate(lines):
        if line.strip() == anchor:
            return "".join(lines[:position]) + fragment + "".join(lines[position:])
    if content and not content.endswith("\n"):
        content += "\n"
    return content + fragment


def compose(
    artifacts: Iterable[FileArtifact],
    tree: ProjectTree,
    index: AggregatorIndex,
) -> ComposeResult:
    """Merge *artifacts* into copies of *tree* and *index*.

    Replace artifacts overwrite their path; identical content is a no-op.
    Insert artifacts create the aggregator from their skeleton when it does
    not exist yet, and are no-ops when the index already records the entry
    or its marker line is already in the file.

    Raises:
        ComposeError: If two artifacts, or an artifact and the tree, disagree
            on the kind of a path.  Nothing is merged in that case.
    """
    batch = list(artifacts)
    check_kinds(batch, tree)

    new_tree = tree.model_copy(deep=True)
    new_index = index.model_copy(deep=True)
    written: list[str] = []
    skipped: list[FileArtifact] = []

    for artifact in batch:
        if artifact.merge_strategy is MergeStrategy.REPLACE_WHOLE_FILE:
            changed = _replace(artifact, new_tree)
        else:
            changed = _insert(artifact, new_tree, new_index)
        new_tree.kinds[artifact.path] = artifact.kind
        if not changed:
            skipped.append(artifact)
        elif artifact.path not in written:
            written.append(artifact.path)

    return ComposeResult(tree=new_tree, index=new_index, written=written, skipped=skipped)


def _replace(artifact: FileArtifact, tree: ProjectTree) -> bool:
    if tree.files.get(artifact.path) == artifact.content:
        return False
    tree.files[artifact.path] = artifact.content
    return True


def _insert(artifact: FileArtifact, tree: ProjectTree, index: AggregatorIndex) -> bool:
    # The model validator guarantees these are set for insert artifacts.
    resource, entry_key, anchor = artifact.resource, artifact.entry_key, artifact.anchor
    assert resource and entry_key and anchor

    if index.has(resource, entry_key):
        return False

    current = tree.files.get(artifact.path)
    if current is not None and entry_marker(entry_key) in current:
        index.record(resource, entry_key, artifact.path)
        return False

    base = current if current is not None else (artifact.skeleton or "")
    tree.files[artifact.path] = insert_before_anchor(base, artifact.content, anchor)
    index.record(resource, entry_key, artifact.path)
    return True


# ---------------------------------------------------------------------------
# Stateful composer
# ---------------------------------------------------------------------------

class FileSetComposer:
    """Session-level composer guarding the project tree.

    Each ``apply`` call claims the paths its artifacts touch for *owner*;
    a second owner claiming any of those paths before the first releases
    them raises ``ComposeError(PathConflict)`` instead of merging.
    """

    def __init__(
        self,
        tree: Optional[ProjectTree] = None,
        index: Optional[AggregatorIndex] = None,
        *,
        writer: Optional[Writer] = None,
        post_write: Optional[PostWriteHook] = None,
    ) -> None:
        self.tree = tree or ProjectTree()
        self.index = index or AggregatorIndex()
        self.writer = writer
        self.post_write = post_write
        self._claims: dict[str, str] = {}

    # -- Claims --------------------------------------------------------------

    def claim(self, owner: str, paths: Iterable[str]) -> None:
        """Claim *paths* for *owner*, all or nothing."""
        wanted = list(dict.fromkeys(paths))
        for path in wanted:
            holder = self._claims.get(path)
            if holder is not None and holder != owner:
                raise ComposeError(
                    ComposeConflict.PATH_CONFLICT, path, f"writer {holder!r}", f"writer {owner!r}"
                )
        for path in wanted:
            self._claims[path] = owner

    def release(self, owner: str) -> None:
        for path in [p for p, holder in self._claims.items() if holder == owner]:
            del self._claims[path]

    def claimed_by(self, path: str) -> Optional[str]:
        return self._claims.get(path)

    # -- Application ---------------------------------------------------------

    async def apply(self, artifacts: Iterable[FileArtifact], owner: str = "workbench") -> ComposeResult:
        """Compose *artifacts* into the shared tree, persist and run the hook.

        Hook failures are reported in ``hook_results`` and never roll back
        the writes that triggered them.
        """
        batch = list(artifacts)
        self.claim(owner, (artifact.path for artifact in batch))
        try:
            result = compose(batch, self.tree, self.index)
            self.tree, self.index = result.tree, result.index

            for path in result.written:
                if self.writer is not None:
                    await self.writer(path, self.tree.files[path])
                if self.post_write is not None:
                    result.hook_results.append(await self.post_write(path))
        finally:
            self.release(owner)
        return result
