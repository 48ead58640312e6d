"""Type handler registry.

Maps an artifact type tag to the handler that parses that kind of file.
A handler has the signature:

    handler(artifact, content) -> List[Artifact]

It may store parsed data on ``artifact`` and returns the artifact's direct
dependencies only. Handlers never touch the filesystem and never recurse;
expanding children is the Resolver's job.
"""

from typing import Callable, Dict, Iterable, List, Optional

from depwatch.artifact import Artifact, ArtifactType

Handler = Callable[[Artifact, str], List[Artifact]]


class UnsupportedType(LookupError):
    """No handler is registered for an artifact type."""

    def __init__(self, type: str):
        super().__init__(f"Do not know how to handle type: {type!r}")
        self.type = type


class HandlerRegistry:
    """Dispatch table from type tag to handler.

    Example:
        registry = HandlerRegistry()
        registry.register('resource', handle_raw)
        children = registry.handle(artifact, content)
    """

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None):
        self._handlers: Dict[str, Handler] = {}
        for type, handler in (handlers or {}).items():
            self.register(type, handler)

    def register(self, type: str, handler: Handler) -> None:
        """Register the handler for a type.

        Raises:
            ValueError: If the type already has a handler.
        """
        if isinstance(type, ArtifactType):
            type = type.value
        if type in self._handlers:
            raise ValueError(f"Duplicate handler for type: {type}")
        self._handlers[type] = handler

    def supports(self, type: str) -> bool:
        """Check if a handler exists for this type."""
        return type in self._handlers

    def handle(self, artifact: Artifact, content: str) -> List[Artifact]:
        """Run the handler for ``artifact.type`` and return its children.

        Raises:
            UnsupportedType: If no handler is registered for the type.
        """
        handler = self._handlers.get(artifact.type)
        if handler is None:
            raise UnsupportedType(artifact.type)
        return list(handler(artifact, content))

    @property
    def types(self) -> List[str]:
        """Return the registered type tags."""
        return list(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


def default_registry(basic_dependencies: Iterable[Artifact] = ()) -> HandlerRegistry:
    """Build the registry for every ArtifactType.

    Args:
        basic_dependencies: Artifacts every template implicitly depends on.
    """
    from .raw import handle_raw
    from .script import handle_script
    from .template import TemplateHandler

    return HandlerRegistry({
        ArtifactType.TEMPLATE.value: TemplateHandler(basic_dependencies),
        ArtifactType.SCRIPT.value: handle_script,
        ArtifactType.MODULE.value: handle_raw,
        ArtifactType.RESOURCE.value: handle_raw,
    })
