"""Artifact descriptors and dependency tree nodes.

An Artifact identifies one source file (a template, script, module or raw
resource). After resolution it carries either an error or the data its
type handler extracted. A TreeNode pairs an Artifact with its resolved
children, in the order the parent declared them.

Usage:
    from depwatch.artifact import Artifact, ArtifactType

    root = Artifact(ArtifactType.TEMPLATE, 'index.html')
"""

import copy
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional


class ArtifactType(str, Enum):
    """Closed set of artifact kinds with a registered handler."""
    TEMPLATE = "template"
    SCRIPT = "script"
    MODULE = "module"
    RESOURCE = "resource"


class NodeError(Enum):
    """Why a node could not be expanded."""
    UNSUPPORTED_TYPE = "Do not know how to handle this type."
    CYCLIC_DEPENDENCY = "Cyclic dependency."
    UNREADABLE_FILE = "Could not open file."
    INVALID_CONTENT = "Could not parse file."


def resolve_path(directory, name: str) -> str:
    """Resolve name against directory into a normalized absolute path.

    Absolute names are returned normalized. Symlinks are not followed.
    """
    return os.path.abspath(os.path.join(str(directory), name))


_SUFFIX_TYPES = {
    '.html': ArtifactType.TEMPLATE,
    '.htm': ArtifactType.TEMPLATE,
    '.js': ArtifactType.SCRIPT,
    '.mjs': ArtifactType.MODULE,
}


def infer_type(filename: str) -> str:
    """Guess an artifact type from a file extension.

    Examples:
        "index.html" -> "template"
        "app.js" -> "script"
        "widget.mjs" -> "module"
        "style.css" -> "resource"
    """
    suffix = Path(filename).suffix.lower()
    return _SUFFIX_TYPES.get(suffix, ArtifactType.RESOURCE).value


@dataclass
class Artifact:
    """Descriptor for one source file.

    Attributes:
        type: Artifact type tag. A plain string so unknown tags can be
              represented and rejected during resolution.
        name: Logical name, usually the path as written by the referrer.
        filename: Absolute path on disk. Derived from name when missing.
        error: Set when the node could not be expanded.
        error_message: Details for the error (e.g. the handler exception).
        data: Raw text content, set by handlers.
        payload: Type-specific parsed structures, set by handlers.
    """

    type: str
    name: str
    filename: Optional[str] = None
    error: Optional[NodeError] = None
    error_message: Optional[str] = None
    data: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.type, ArtifactType):
            self.type = self.type.value

    @classmethod
    def from_path(cls, filename: str, type: Optional[str] = None) -> 'Artifact':
        """Build an artifact for a file, inferring the type if not given."""
        return cls(
            type=type or infer_type(filename),
            name=Path(filename).name,
            filename=resolve_path(os.getcwd(), str(filename)),
        )

    def copy(self) -> 'Artifact':
        """Return an independent copy (payload included)."""
        return copy.deepcopy(self)

    def failed(self, error: NodeError, message: Optional[str] = None) -> 'Artifact':
        """Return a copy carrying only identity fields and the given error."""
        return Artifact(
            type=self.type,
            name=self.name,
            filename=self.filename,
            error=error,
            error_message=message or error.value,
        )

    @property
    def has_error(self) -> bool:
        """Return True if resolution attached an error."""
        return self.error is not None


@dataclass
class TreeNode:
    """A resolved artifact and its ordered children.

    Unpacks like the pair it represents:
        artifact, children = node
    """

    artifact: Artifact
    children: List['TreeNode'] = field(default_factory=list)

    def __iter__(self) -> Iterator[Any]:
        yield self.artifact
        yield self.children

    @property
    def filename(self) -> Optional[str]:
        return self.artifact.filename

    @property
    def error(self) -> Optional[NodeError]:
        return self.artifact.error

    def shape(self) -> tuple:
        """Return (type, name, error, children shapes) for structural comparison."""
        return (
            self.artifact.type,
            self.artifact.name,
            self.artifact.error,
            tuple(child.shape() for child in self.children),
        )
