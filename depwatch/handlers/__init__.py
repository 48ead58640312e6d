"""Per-type content handlers.

Each handler turns one artifact's content into its direct dependencies,
storing whatever it parsed on the artifact:

- template: HTML documents with named <template> elements (BeautifulSoup)
- script: JavaScript with "require <name>" directives
- module, resource: kept verbatim

Example:
    from depwatch.handlers import default_registry

    registry = default_registry()
    children = registry.handle(artifact, content)
"""

from .registry import Handler, HandlerRegistry, UnsupportedType, default_registry
from .raw import handle_raw
from .script import handle_script, iter_directives
from .template import TemplateHandler, parse_html

__all__ = [
    'Handler',
    'HandlerRegistry',
    'UnsupportedType',
    'default_registry',
    'handle_raw',
    'handle_script',
    'iter_directives',
    'TemplateHandler',
    'parse_html',
]
