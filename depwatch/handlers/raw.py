"""Handler for files whose content is kept verbatim (modules, resources)."""

from typing import List

from depwatch.artifact import Artifact


def handle_raw(artifact: Artifact, content: str) -> List[Artifact]:
    artifact.data = content
    return []
