"""Command line entry point: print or watch dependency trees.

Usage:
    python -m depwatch [options] [config_file]

Examples:
    python -m depwatch                      # roots from ./depwatch.yaml
    python -m depwatch --root index.html    # no config file needed
    python -m depwatch --watch site.yaml    # print every rebuild
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple, Union

from depwatch.artifact import Artifact, TreeNode
from depwatch.handlers import default_registry
from depwatch.resolver import Resolver
from depwatch.tree import collect_errors, format_tree
from depwatch.watching import WatchCoordinator

from .converter import config_base_path, config_to_basic_dependencies, config_to_roots
from .parser import Config, parse_config_file

DEFAULT_CONFIG = 'depwatch.yaml'


def load_config(
    config_path: Union[str, Path, None] = None,
    base_path: Union[str, Path, None] = None,
) -> Tuple[Config, Path]:
    """Load the configuration and work out the base path.

    Without an explicit path, ./depwatch.yaml is used if present and an
    empty configuration otherwise.

    Returns:
        (config, base_path)
    """
    if config_path is None and Path(DEFAULT_CONFIG).exists():
        config_path = DEFAULT_CONFIG

    if config_path is None:
        config = Config()
        return config, config_base_path(config, base_path)

    config_path = Path(config_path)
    config = parse_config_file(config_path)
    if base_path is None:
        # relative base paths are relative to the config file
        base_path = config_path.parent / config.config.get('base_path', '.')
    return config, config_base_path(config, base_path)


def make_resolver(config: Config, base_path: Path) -> Resolver:
    """Build a Resolver using the configured basic dependencies."""
    registry = default_registry(config_to_basic_dependencies(config, base_path))
    return Resolver(registry=registry, base_path=base_path)


def make_coordinator(config: Config, base_path: Path) -> WatchCoordinator:
    return WatchCoordinator(
        resolver=make_resolver(config, base_path),
        error_window=config.config.get('error_window', 1.0),
    )


async def resolve_all(resolver: Resolver, roots: List[Artifact]) -> List[TreeNode]:
    """Resolve several roots concurrently."""
    return list(await asyncio.gather(*(resolver.resolve(root) for root in roots)))


def print_tree(tree: TreeNode) -> None:
    print(format_tree(tree))
    errors = collect_errors(tree)
    if errors:
        print(f"  {len(errors)} error(s)")


async def watch_roots(
    coordinator: WatchCoordinator,
    roots: List[Artifact],
    stop: Optional[asyncio.Event] = None,
) -> None:
    """Watch roots, printing every update, until stop is set.

    Without a stop event this runs until cancelled or interrupted.
    """
    def on_update(tree: TreeNode, trigger: Artifact) -> None:
        print(f"Updated {tree.artifact.name} (changed: {trigger.name})")
        print_tree(tree)

    def on_error(tree: TreeNode, artifact: Artifact) -> None:
        print(
            f"Error in {tree.artifact.name}: {artifact.filename or artifact.name}: "
            f"{artifact.error_message or artifact.error.value}",
            file=sys.stderr,
        )

    stop = stop or asyncio.Event()
    coordinator.on_error(on_error)
    coordinator.watcher.start()
    try:
        for root in roots:
            await coordinator.watch(root, on_update)
        await stop.wait()
    finally:
        coordinator.close()
        coordinator.watcher.stop()


def main(args: Optional[List[str]] = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failure or errored nodes)
    """
    import argparse

    parser = argparse.ArgumentParser(
        description='Print or watch dependency trees of templates and scripts',
        prog='python -m depwatch',
    )
    parser.add_argument(
        'config_file',
        nargs='?',
        default=None,
        help=f'Path to the config file (default: {DEFAULT_CONFIG} if present)',
    )
    parser.add_argument(
        '--root',
        action='append',
        default=[],
        help='Root file to resolve (repeatable; added to configured roots)',
    )
    parser.add_argument(
        '--type',
        default=None,
        help='Artifact type for --root files (default: inferred from extension)',
    )
    parser.add_argument(
        '--base-path',
        type=str,
        default=None,
        help='Override base path for configured roots',
    )
    parser.add_argument(
        '--watch',
        action='store_true',
        help='Keep watching and print every rebuild',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Print debug logging',
    )

    parsed = parser.parse_args(args)
    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        config, base_path = load_config(parsed.config_file, parsed.base_path)
        roots = config_to_roots(config, base_path)
        roots.extend(Artifact.from_path(root, type=parsed.type) for root in parsed.root)
        if not roots:
            print("Error: no roots configured (use --root or a config file)", file=sys.stderr)
            return 1

        if parsed.watch:
            try:
                asyncio.run(watch_roots(make_coordinator(config, base_path), roots))
            except KeyboardInterrupt:
                pass
            return 0

        trees = asyncio.run(resolve_all(make_resolver(config, base_path), roots))
        for tree in trees:
            print_tree(tree)
        return 1 if any(collect_errors(tree) for tree in trees) else 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if parsed.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
