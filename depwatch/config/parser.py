"""YAML parsing and validation for depwatch configuration files.

Example depwatch.yaml:
    config:
      base_path: .
      error_window: 1.0
      basic_dependencies:
        - runtime/widget.mjs

    roots:
      - index.html
      - name: app.js
        type: script
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from depwatch.artifact import ArtifactType

VALID_TYPES = {t.value for t in ArtifactType}


@dataclass
class Config:
    """Parsed configuration."""
    config: Dict[str, Any] = field(default_factory=dict)
    roots: List[Dict[str, Any]] = field(default_factory=list)


class ConfigParseError(Exception):
    """Error parsing or validating a configuration file."""
    pass


def parse_config_file(path: Union[str, Path]) -> Config:
    """Parse and validate a depwatch.yaml file.

    Raises:
        ConfigParseError: If the file is invalid
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding='utf-8') as f:
        return _load(f)


def parse_config_string(content: str) -> Config:
    """Parse configuration from a YAML string."""
    return _load(content)


def _load(stream) -> Config:
    try:
        data = yaml.safe_load(stream)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Invalid YAML syntax: {e}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigParseError("YAML root must be a mapping")

    return _validate_data(data)


def _validate_data(data: Dict[str, Any]) -> Config:
    config = data.get('config') or {}
    if not isinstance(config, dict):
        raise ConfigParseError("'config' must be a mapping")
    _validate_settings(config)

    roots = data.get('roots') or []
    if not isinstance(roots, list):
        raise ConfigParseError("'roots' must be a list")

    return Config(
        config=config,
        roots=[_validate_root(root, i) for i, root in enumerate(roots)],
    )


def _validate_settings(config: Dict[str, Any]) -> None:
    if 'base_path' in config and not isinstance(config['base_path'], str):
        raise ConfigParseError("'base_path' must be a string")

    if 'error_window' in config:
        window = config['error_window']
        if isinstance(window, bool) or not isinstance(window, (int, float)):
            raise ConfigParseError("'error_window' must be a number")
        if window < 0:
            raise ConfigParseError("'error_window' must not be negative")

    basic = config.get('basic_dependencies', [])
    if not isinstance(basic, list):
        raise ConfigParseError("'basic_dependencies' must be a list")
    for i, dep in enumerate(basic):
        if not isinstance(dep, str):
            raise ConfigParseError(f"Basic dependency {i} must be a string")


def _validate_root(root: Any, index: int) -> Dict[str, Any]:
    """Normalize a root entry to its long form ({'name': ..., 'type': ...}).

    Short form is just the file name; the type is then inferred later.
    """
    if isinstance(root, str):
        return {'name': root}

    if not isinstance(root, dict):
        raise ConfigParseError(f"Root {index} must be a string or mapping")

    if 'name' not in root:
        raise ConfigParseError(f"Root {index} missing required field 'name'")
    if not isinstance(root['name'], str):
        raise ConfigParseError(f"Root {index}: 'name' must be a string")

    if 'type' in root:
        if not isinstance(root['type'], str):
            raise ConfigParseError(f"Root '{root['name']}': 'type' must be a string")
        if root['type'] not in VALID_TYPES:
            raise ConfigParseError(
                f"Root '{root['name']}' has invalid type '{root['type']}'. "
                f"Valid types: {sorted(VALID_TYPES)}"
            )

    return root
