"""Handler for script files.

Scripts declare their dependencies with directives at the top of the file,
the same way "use strict" is written:

    "require lib/util.js";
    'require widgets.js'
    // comments and blank lines between directives are fine
    var x = 1;

Only the directive prologue is scanned: the run of string-literal
statements before the first other statement.
"""

import re
from typing import Dict, Iterator, List

from depwatch.artifact import Artifact, ArtifactType

# directive keyword -> type of the dependency it declares
DIRECTIVE_TYPES: Dict[str, str] = {
    'require': ArtifactType.SCRIPT.value,
}

_TRIVIA = re.compile(r'(?:\s+|;|//[^\n]*|/\*.*?\*/)*', re.S)
_STRING = re.compile(r'''(["'])((?:\\.|(?!\1)[^\\\n])*)\1''')
_TERMINATOR = re.compile(r'[ \t]*(?:;|\r|\n|//|/\*|$)')
_DIRECTIVE = re.compile(r'^(\S+)\s+(.+)$')


def iter_directives(source: str) -> Iterator[str]:
    """Yield the directive strings from the prologue of a script."""
    pos = 0
    while True:
        pos = _TRIVIA.match(source, pos).end()
        match = _STRING.match(source, pos)
        if match is None:
            return
        # "a" + b is an expression, not a directive
        if _TERMINATOR.match(source, match.end()) is None:
            return
        yield re.sub(r'\\(.)', r'\1', match.group(2))
        pos = match.end()


def handle_script(artifact: Artifact, content: str) -> List[Artifact]:
    children = []
    for directive in iter_directives(content):
        match = _DIRECTIVE.match(directive.strip())
        if not match:
            continue
        keyword, name = match.groups()
        type = DIRECTIVE_TYPES.get(keyword)
        if type:
            children.append(Artifact(type=type, name=name.strip()))

    artifact.data = content
    return children
