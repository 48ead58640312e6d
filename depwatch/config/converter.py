"""Convert parsed configuration into Artifacts."""

from pathlib import Path
from typing import Any, Dict, List, Union

from depwatch.artifact import Artifact, infer_type, resolve_path

from .parser import Config


def config_base_path(config: Config, base_path: Union[str, Path, None] = None) -> Path:
    """Return the directory root names are relative to.

    Args:
        config: Parsed configuration
        base_path: Override (defaults to config base_path or cwd)
    """
    if base_path is None:
        base_path = config.config.get('base_path', '.')
    return Path(base_path).resolve()


def config_to_roots(
    config: Config,
    base_path: Union[str, Path, None] = None,
) -> List[Artifact]:
    """Build root artifacts from all configured roots."""
    base_path = config_base_path(config, base_path)
    return [root_to_artifact(root, base_path) for root in config.roots]


def root_to_artifact(root: Dict[str, Any], base_path: Path) -> Artifact:
    """Convert one normalized root entry to an Artifact."""
    name = root['name']
    return Artifact(
        type=root.get('type') or infer_type(name),
        name=name,
        filename=resolve_path(base_path, name),
    )


def config_to_basic_dependencies(
    config: Config,
    base_path: Union[str, Path, None] = None,
) -> List[Artifact]:
    """Build the artifacts every template implicitly depends on."""
    base_path = config_base_path(config, base_path)
    return [
        Artifact(
            type=infer_type(path),
            name=Path(path).name,
            filename=resolve_path(base_path, path),
        )
        for path in config.config.get('basic_dependencies', [])
    ]
