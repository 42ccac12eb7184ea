"""
Command-line interface for the runtime helpers.

Runs XmlQuery lookups against an XML file (or stdin) and prints the matches as
JSON, which makes it easy to inspect loosely structured payloads from a shell:

    runtime_helpers values response.xml status --scope response --scope-contains /webdav/
    runtime_helpers attributes feed.xml entry
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config.settings import HelperSettings, configure, get_settings
from .exceptions import ConfigurationError
from .parsing.xml_query import XmlQuery


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runtime_helpers",
        description="Extract values, fragments and attributes from XML by element local name.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="YAML or JSON settings file")
    parser.add_argument("--log-level", help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("values", "Text content of every matching element"),
        ("contents", "Serialized XML of every matching element"),
        ("attributes", "Attribute map of every matching element"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("file", help="XML file to read, '-' for stdin")
        command.add_argument("tag", help="Element local name to match")
        command.add_argument("--scope", help="Only look inside elements with this local name")
        command.add_argument("--scope-contains", help="Only use scope elements whose XML contains this text")
        if name == "contents":
            command.add_argument("--contains", help="Only return fragments containing this text")
    return parser


def _setup_logging(level: int) -> None:
    # Set up logging without reconfiguring root if already configured
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root_logger.addHandler(handler)
        root_logger.setLevel(level)


def _read_input(file_arg: str) -> str:
    if file_arg == "-":
        return sys.stdin.read()
    return Path(file_arg).read_text(encoding="utf-8")


def _contains(text: Optional[str]):
    if text is None:
        return None
    return lambda fragment: text in fragment


def run_query(query: XmlQuery, command: str, xml_content: str, tag: str, scope: Optional[str] = None,
              scope_contains: Optional[str] = None, contains: Optional[str] = None) -> list:
    """
    Run one lookup and return its matches.

    With a scope the lookup runs inside each scope fragment (optionally filtered
    on scope_contains); otherwise it runs over the whole document.
    """
    if scope:
        scope_filter = _contains(scope_contains)
        if command == "values":
            return query.get_scoped_values(xml_content, tag, scope, scope_filter)
        if command == "contents":
            return query.get_scoped_contents(xml_content, tag, scope, scope_filter, _contains(contains))
        return query.get_scoped_attributes(xml_content, tag, scope, scope_filter)

    if command == "values":
        return query.get_values(xml_content, tag)
    if command == "contents":
        return query.get_contents(xml_content, tag, _contains(contains))
    return query.get_attributes(xml_content, tag)


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the CLI application.

    Args:
        args: Optional command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args is None:
        args = sys.argv[1:]

    options = _build_parser().parse_args(args)

    try:
        settings = HelperSettings.from_file(options.config) if options.config else get_settings()
        if options.log_level:
            settings = HelperSettings(**{**settings.to_dict(), "log_level": options.log_level})
        configure(settings)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    _setup_logging(settings.log_level_value)
    logger = logging.getLogger(__name__)

    try:
        xml_content = _read_input(options.file)
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read XML input {options.file}: {e}")
        return 1

    query = XmlQuery(settings=settings)
    results = run_query(query, options.command, xml_content, options.tag, options.scope,
                        options.scope_contains, getattr(options, "contains", None))
    logger.info(f"{options.command}: {len(results)} match(es) for '{options.tag}'")

    json.dump(results, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
