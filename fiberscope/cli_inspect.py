#!/usr/bin/env python3
"""
Command-line inspector.

Connects to a running DevTools host and runs a single command.
Usage: python -m fiberscope.cli_inspect [--url URL] <command> [options]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from fiberscope.inspector.client import InspectorClient
from fiberscope.inspector.protocol import DEFAULT_PORT

logger = logging.getLogger(__name__)


def create_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fiberscope-inspect", description="Inspect a running DevTools host")
    parser.add_argument("--url", default=f"http://localhost:{DEFAULT_PORT}", help="DevTools host URL")
    parser.add_argument("--timeout", type=float, default=10.0, help="Request timeout in seconds")
    parser.add_argument("--format", choices=["tree", "json"], default="tree", help="Output format")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("tree", help="Print the component tree")
    subparsers.add_parser("editors", help="List editors available on the host")

    select_parser = subparsers.add_parser("select", help="Select a component by id")
    select_parser.add_argument("component_id")

    open_parser = subparsers.add_parser("open", help="Open a file in the host's editor")
    open_parser.add_argument("file")
    open_parser.add_argument("--line", type=int)
    open_parser.add_argument("--column", type=int)
    return parser


def format_tree(tree: List[Dict[str, Any]], selected_id: Optional[str] = None) -> str:
    """Indented text rendering of a COMPONENT_TREE payload."""
    lines: List[str] = []

    def render(node: Dict[str, Any], depth: int):
        marker = "*" if node.get("id") == selected_id else " "
        source = node.get("source")
        location = f"  ({source['file']}:{source.get('line', '?')})" if source else ""
        hooks = f" [{len(node['hooks'])} hooks]" if node.get("hooks") else ""
        lines.append(f"{marker} {'  ' * depth}<{node.get('name')}> {node.get('kind')}{hooks}{location}")
        for child in node.get("children", []):
            render(child, depth + 1)

    for root in tree:
        render(root, 0)
    return "\n".join(lines) if lines else "(empty tree)"


async def run_command(args: argparse.Namespace) -> int:
    # A CLI call is one-shot: no background reconnects.
    client = InspectorClient(args.url, max_reconnect_attempts=0, request_timeout=args.timeout)
    if not await client.connect():
        print(f"❌ No DevTools host reachable at {args.url}")
        return 1

    try:
        if args.command == "tree":
            tree = await client.fetch_tree()
            if args.format == "json":
                print(json.dumps(tree, indent=2))
            else:
                print(format_tree(tree, client.selected_id))
        elif args.command == "editors":
            data = await client.get_available_editors()
            if args.format == "json":
                print(json.dumps(data, indent=2))
            else:
                print(f"current: {data.get('current')}")
                for editor in data.get("editors", []):
                    print(f"  - {editor}")
        elif args.command == "select":
            await client.select_component(args.component_id)
            print(f"Selected {args.component_id}")
        elif args.command == "open":
            result = await client.open_source(file=args.file, line=args.line, column=args.column)
            print(("✓ " if result.get("success") else "❌ ") + str(result.get("message", "")))
            return 0 if result.get("success") else 1
        return 0
    except asyncio.TimeoutError:
        print(f"❌ Command timed out after {args.timeout} seconds")
        return 1
    except ConnectionError as e:
        print(f"❌ Connection lost: {e}")
        return 1
    finally:
        await client.disconnect()


def main(argv: Optional[List[str]] = None):
    parser = create_cli_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        sys.exit(asyncio.run(run_command(args)))
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
