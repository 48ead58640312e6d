"""YAML configuration and command line runner.

Example depwatch.yaml:
    config:
      base_path: site
      basic_dependencies:
        - runtime/widget.mjs

    roots:
      - index.html

CLI:
    python -m depwatch depwatch.yaml
"""

from .parser import parse_config_file, parse_config_string, Config, ConfigParseError
from .converter import config_to_roots, config_to_basic_dependencies
from .runner import main

__all__ = [
    'parse_config_file',
    'parse_config_string',
    'Config',
    'ConfigParseError',
    'config_to_roots',
    'config_to_basic_dependencies',
    'main',
]
