"""Data models for the build dependency graph."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from depsaw.errors import UnknownTargetError


@dataclass(frozen=True)
class Target:
    """A build-graph node with declared dependency and data labels."""
    label: str
    kind: str = "target"
    deps: frozenset[str] = frozenset()
    data: frozenset[str] = frozenset()

    @property
    def children(self) -> frozenset[str]:
        return self.deps | self.data


@dataclass(frozen=True)
class File:
    """A leaf node for a source or data file. ``path`` is None for external repositories."""
    label: str
    path: str | None = None

    @classmethod
    def from_label(cls, label: str) -> File:
        return cls(label=label, path=label_to_path(label))


def label_to_path(label: str) -> str | None:
    """Map a build label to a repository-relative path.

    ``//pkg:file`` -> ``pkg/file``, ``//:file`` -> ``file``. Labels of other
    repositories map to None; anything not shaped like a label is already a path.
    """
    if label.startswith("@@//"):
        label = label[2:]
    elif label.startswith("@//"):
        label = label[1:]
    if label.startswith("@"):
        return None
    if not label.startswith("//"):
        return label
    package, sep, name = label[2:].partition(":")
    if not sep:
        return package
    return f"{package}/{name}" if package else name


@dataclass
class DependencyGraph:
    """Targets, files, and the derived reverse-dependency index.

    Built once by ``DependencyGraphBuilder`` and read-only afterward.
    """
    targets: dict[str, Target] = field(default_factory=dict)
    files: dict[str, File] = field(default_factory=dict)
    rdeps: dict[str, frozenset[str]] = field(default_factory=dict, compare=False)  # node -> {targets}
    order: tuple[str, ...] = field(default=(), compare=False)  # targets, dependencies first

    def __contains__(self, label: str) -> bool:
        return label in self.targets or label in self.files

    def __len__(self) -> int:
        return len(self.targets) + len(self.files)

    @property
    def edge_count(self) -> int:
        return sum(len(t.deps) + len(t.data) for t in self.targets.values())

    def is_target(self, label: str) -> bool:
        return label in self.targets

    def get_target(self, label: str) -> Target:
        try:
            return self.targets[label]
        except KeyError:
            raise UnknownTargetError(label) from None

    def children(self, label: str) -> frozenset[str]:
        target = self.targets.get(label)
        return target.children if target is not None else frozenset()

    def dependents(self, label: str) -> frozenset[str]:
        return self.rdeps.get(label, frozenset())

    def file_path(self, label: str) -> str | None:
        node = self.files.get(label)
        return node.path if node is not None else None

    def reachable_targets(self, labels: Iterable[str]) -> set[str]:
        """Targets among ``labels`` and everything below them, in one shared walk."""
        seen = set(labels)
        stack = list(seen)
        while stack:
            for child in self.children(stack.pop()):
                if child not in seen:
                    seen.add(child)
                    stack.append(child)
        return {label for label in seen if label in self.targets}

    def total_dependents(self, label: str) -> int:
        """Size of the transitive reverse-dependency closure of ``label``."""
        seen: set[str] = set()
        queue = deque(self.dependents(label))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.dependents(current) - seen)
        return len(seen)
