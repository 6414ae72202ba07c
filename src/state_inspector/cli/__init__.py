"""Command-line interface for State Inspector."""

from state_inspector.cli.main import main
from state_inspector.cli.parser import build_parser, parse_arguments

__all__ = ["build_parser", "main", "parse_arguments"]
