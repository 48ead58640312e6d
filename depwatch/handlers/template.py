"""Handler for HTML template documents.

A template document holds named ``<template>`` elements plus the scripts,
stylesheets and other template documents it includes:

    <link rel="template" href="widgets.html">
    <script src="app.js"></script>
    <template name="greeting">
      <link rel="stylesheet" href="greeting.css">
      <p oak-onclick="wave">Hello {{name}}</p>
      <use mixins="draggable">{"axis": "x"}</use>
    </template>

Parsing pulls everything the page renderer needs out of the markup:

- per template: dependencies, event bindings, unbound variables, uses
  and the remaining inner HTML
- document-level includes, which become the artifact's children
- document-level uses and the remaining document
"""

import re
from pathlib import Path
from typing import Any, Dict, Iterable, List

from bs4 import BeautifulSoup, NavigableString, Tag

from depwatch.artifact import Artifact, ArtifactType, resolve_path

EVENT_PREFIX = 'oak-on'

_UNBOUND = re.compile(r'{{|{#|{\^')


def parse_html(content: str) -> BeautifulSoup:
    """Parse HTML into a document tree with single-valued attributes."""
    return BeautifulSoup(content, 'html.parser', multi_valued_attributes=None)


def selector_for(element: Tag, root: Tag) -> str:
    """Return a CSS selector locating element from within root.

    Example: "div:nth-child(2) > span:nth-child(1)"
    """
    parts = []
    node = element
    while node is not None and node is not root:
        parent = node.parent
        siblings = [child for child in parent.children if isinstance(child, Tag)]
        index = next(i for i, child in enumerate(siblings) if child is node)
        parts.append(f"{node.name}:nth-child({index + 1})")
        node = parent
    return ' > '.join(reversed(parts))


def eat_uses(parent: Tag) -> List[Dict[str, Any]]:
    """Collect ``<use>`` elements under parent, removing them from the tree.

    Returned in reverse document order.
    """
    uses = []
    for use in parent.find_all('use'):
        uses.append({
            'mixins': (use.get('mixins') or '').split(),
            'obj': use.get_text() or '{}',
            'selector': selector_for(use, parent),
        })
        use.extract()
    uses.reverse()
    return uses


def _is_text(node) -> bool:
    # Comment, CData etc. subclass NavigableString
    return type(node) is NavigableString


class TemplateHandler:
    """Template handler bound to the dependencies every template shares."""

    def __init__(self, basic_dependencies: Iterable[Artifact] = ()):
        self.basic_dependencies = [dep.copy() for dep in basic_dependencies]

    def __call__(self, artifact: Artifact, content: str) -> List[Artifact]:
        document = parse_html(content)
        directory = Path(artifact.filename).parent if artifact.filename else Path.cwd()

        top_level = [
            element for element in document.find_all('template')
            if element.find_parent('template') is None
        ]
        templates = [self._extract_template(element, directory) for element in top_level]

        includes = self._extract_includes(document, directory)

        artifact.payload['templates'] = templates
        artifact.payload['uses'] = eat_uses(document)
        artifact.payload['document'] = str(document)

        candidates = [dep.copy() for dep in self.basic_dependencies] + includes
        for template in templates:
            candidates.extend(template['dependencies'])
        return _unique_by_filename(candidates)

    def _extract_template(self, template: Tag, directory: Path) -> Dict[str, Any]:
        template.extract()
        name = template.get('name')
        if not name:
            raise ValueError('template but no name')

        dependencies = []
        for link in template.find_all('link', href=True):
            rel = (link.get('rel') or '').lower()
            if rel not in ('stylesheet', 'script'):
                continue
            link.extract()
            href = link['href']
            dependencies.append(Artifact(
                type=ArtifactType.SCRIPT if rel == 'script' else ArtifactType.RESOURCE,
                name=href,
                filename=resolve_path(directory, href),
            ))

        events = []
        for element in template.find_all(True):
            bound = [attr for attr in element.attrs if attr.startswith(EVENT_PREFIX)]
            if not bound:
                continue
            selector = selector_for(element, template)
            for attr in bound:
                events.append([selector, attr[len(EVENT_PREFIX):], element[attr]])
                del element[attr]

        unbound = self._extract_unbound(template)
        uses = eat_uses(template)

        return {
            'name': name,
            'events': events,
            'data': template.decode_contents().strip(),
            'dependencies': dependencies,
            'unbound': unbound,
            'uses': uses,
        }

    def _extract_unbound(self, template: Tag) -> Dict[str, List[Dict[str, Any]]]:
        """Find text and attributes still holding mustache markers.

        Each element holding any gets a synthetic name ("a<index>") that the
        text and attribute records refer to.
        """
        children: List[Dict[str, Any]] = []
        attrs: List[Dict[str, Any]] = []
        elements: List[Dict[str, Any]] = []

        for i, element in enumerate(template.find_all(True)):
            if element.name == 'use':
                continue
            ename = f"a{i}"
            texts = [
                {'ename': ename, 'childi': j, 'value': str(child)}
                for j, child in enumerate(element.contents)
                if _is_text(child) and _UNBOUND.search(child)
            ]
            values = [
                {'ename': ename, 'aname': aname, 'value': value}
                for aname, value in element.attrs.items()
                if isinstance(value, str) and _UNBOUND.search(value)
            ]
            for value in values:
                del element[value['aname']]
            if texts or values:
                children.extend(texts)
                attrs.extend(values)
                elements.append({'name': ename, 'selector': selector_for(element, template)})

        return {'children': children, 'attrs': attrs, 'elements': elements}

    def _extract_includes(self, document: BeautifulSoup, directory: Path) -> List[Artifact]:
        includes = []
        for include in document.find_all(['script', 'link']):
            if include.name == 'script':
                src = include.get('src')
                type = ArtifactType.SCRIPT
            else:
                src = include.get('href')
                rel = (include.get('rel') or '').lower()
                if rel == 'stylesheet':
                    type = ArtifactType.RESOURCE
                elif rel == 'template':
                    type = ArtifactType.TEMPLATE
                else:
                    continue
            # absolute URLs are served elsewhere
            if not src or src.startswith('/'):
                continue
            if type is not ArtifactType.RESOURCE:
                include.extract()
            includes.append(Artifact(type=type, name=src, filename=resolve_path(directory, src)))
        return includes


def _unique_by_filename(artifacts: List[Artifact]) -> List[Artifact]:
    seen = set()
    unique = []
    for artifact in artifacts:
        if artifact.filename in seen:
            continue
        seen.add(artifact.filename)
        unique.append(artifact)
    return unique
