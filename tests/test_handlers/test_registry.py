"""Tests for HandlerRegistry."""

import pytest
from unittest.mock import MagicMock

from depwatch.artifact import Artifact, ArtifactType
from depwatch.handlers.registry import HandlerRegistry, UnsupportedType, default_registry
from depwatch.handlers.template import TemplateHandler


class TestHandlerRegistry:
    """Tests for registering and dispatching handlers."""

    def test_empty_registry(self):
        """A new registry supports nothing."""
        registry = HandlerRegistry()
        assert len(registry) == 0
        assert not registry.supports("script")

    def test_register_and_handle(self):
        """handle() runs the handler registered for the type."""
        child = Artifact("script", "b.js")
        handler = MagicMock(return_value=[child])
        registry = HandlerRegistry({"script": handler})
        artifact = Artifact("script", "a.js")

        children = registry.handle(artifact, "content")

        assert children == [child]
        handler.assert_called_once_with(artifact, "content")

    def test_register_enum_type(self):
        """ArtifactType members register under their string value."""
        registry = HandlerRegistry()
        registry.register(ArtifactType.RESOURCE, MagicMock(return_value=[]))
        assert registry.supports("resource")

    def test_duplicate_register_raises(self):
        """Registering a type twice is an error."""
        registry = HandlerRegistry({"script": MagicMock()})
        with pytest.raises(ValueError, match="Duplicate handler"):
            registry.register("script", MagicMock())

    def test_unsupported_type_raises(self):
        """handle() raises UnsupportedType for unknown types."""
        registry = HandlerRegistry()
        with pytest.raises(UnsupportedType) as exc_info:
            registry.handle(Artifact("coffee", "a.coffee"), "")
        assert exc_info.value.type == "coffee"
        assert isinstance(exc_info.value, LookupError)

    def test_handler_result_becomes_list(self):
        """Handlers may return any iterable."""
        registry = HandlerRegistry({"script": lambda artifact, content: iter([])})
        assert registry.handle(Artifact("script", "a.js"), "") == []


class TestDefaultRegistry:
    """Tests for default_registry."""

    def test_covers_every_artifact_type(self):
        """Each ArtifactType has a handler."""
        registry = default_registry()
        assert sorted(registry.types) == sorted(t.value for t in ArtifactType)

    def test_raw_types_keep_content(self):
        """Modules and resources store content and have no children."""
        registry = default_registry()
        for type in ("module", "resource"):
            artifact = Artifact(type, "x")
            assert registry.handle(artifact, "body { }") == []
            assert artifact.data == "body { }"

    def test_basic_dependencies_passed_to_template_handler(self):
        """Basic dependencies reach the template handler."""
        dep = Artifact("module", "widget.mjs", filename="/runtime/widget.mjs")
        registry = default_registry([dep])

        artifact = Artifact("template", "index.html", filename="/site/index.html")
        children = registry.handle(artifact, "<p>hi</p>")

        assert [c.filename for c in children] == ["/runtime/widget.mjs"]

    def test_template_handler_copies_basic_dependencies(self):
        """Mutating returned children does not alter the configured list."""
        dep = Artifact("module", "widget.mjs", filename="/runtime/widget.mjs")
        handler = TemplateHandler([dep])

        children = handler(Artifact("template", "a.html", filename="/a.html"), "")
        children[0].data = "changed"

        assert handler.basic_dependencies[0].data is None
        assert dep.data is None
