"""
polyloft_analyzer/__main__.py
=============================

Command-line front end for the Polyloft analyzer.

Usage
-----
    python -m polyloft_analyzer <command> [options]

Commands
--------
    check         Report diagnostics for one or more .pf files
    hover         Show the signature of the symbol at LINE COL
    definition    Show where the symbol at LINE COL is declared
    complete      List completion candidates at LINE COL
    rules         List the registered diagnostic rules

LINE and COL are 1-based, as printed by ``check``.  Imports are resolved
relative to the directory of the file being analysed.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import textwrap
import traceback
from pathlib import Path
from typing import Optional, Sequence, TextIO

from polyloft_analyzer import __version__
from polyloft_analyzer.config import AnalyzerConfig
from polyloft_analyzer.diagnostics import Severity
from polyloft_analyzer.document import Position
from polyloft_analyzer.engine import Analyzer
from polyloft_analyzer.errors import AnalyzerError
from polyloft_analyzer.resolver import DirectoryResolver
from polyloft_analyzer.rules import RULES

__description__ = "Polyloft analyzer: diagnostics, hover and completion for .pf files"

# ═══════════════════════════════════════════════════════════════════════════
# TERMINAL COLORS
# ═══════════════════════════════════════════════════════════════════════════


class _Colors:
    """ANSI color codes, disabled when not writing to a TTY."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def _code(self, code: str) -> str:
        return code if self.enabled else ""

    @property
    def RESET(self) -> str:
        return self._code("\033[0m")

    @property
    def BOLD(self) -> str:
        return self._code("\033[1m")

    @property
    def RED(self) -> str:
        return self._code("\033[31m")

    @property
    def YELLOW(self) -> str:
        return self._code("\033[33m")

    @property
    def CYAN(self) -> str:
        return self._code("\033[36m")

    def severity(self, severity: Severity) -> str:
        return {Severity.ERROR: self.RED, Severity.WARNING: self.YELLOW}.get(severity, self.CYAN)


def _get_colors(stream: TextIO = sys.stdout) -> _Colors:
    """Get color codes appropriate for the given stream."""
    try:
        is_tty = hasattr(stream, "isatty") and stream.isatty()
    except (AttributeError, ValueError):
        is_tty = False
    return _Colors(enabled=is_tty and os.environ.get("NO_COLOR") is None)


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _make_analyzer(args: argparse.Namespace, path: str) -> Analyzer:
    disabled = frozenset(args.disable or ()) if hasattr(args, "disable") else frozenset()
    config = AnalyzerConfig(
        disabled_rules=disabled,
        indent_width=getattr(args, "indent_width", 4),
        check_indentation=not getattr(args, "no_indentation", False),
        max_diagnostics=getattr(args, "max_diagnostics", 0),
    )
    root = Path(path).resolve().parent if path != "-" else Path.cwd()
    return Analyzer(config=config, resolver=DirectoryResolver(root))


def _position(args: argparse.Namespace) -> Position:
    if args.line < 1 or args.column < 1:
        raise ValueError("LINE and COL are 1-based")
    return Position(args.line - 1, args.column - 1)


# ═══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════


def cmd_check(args: argparse.Namespace) -> int:
    """Handle the 'check' command."""
    colors = _get_colors()
    has_errors = False
    report = []
    for path in args.files:
        try:
            text = _read(path)
        except OSError as e:
            sys.stderr.write(f"{colors.RED}Error:{colors.RESET} cannot read {path}: {e}\n")
            has_errors = True
            continue
        name = "<stdin>" if path == "-" else path
        diagnostics = _make_analyzer(args, path).analyze(text, uri=name)
        has_errors = has_errors or any(d.severity is Severity.ERROR for d in diagnostics)
        if args.format == "json":
            report.append({"file": name, "diagnostics": [d.to_dict() for d in diagnostics]})
            continue
        for diag in diagnostics:
            line = diag.to_gcc_format(name)
            if colors.enabled:
                word = diag.severity.value
                line = line.replace(f": {word}:", f": {colors.severity(diag.severity)}"
                                                  f"{colors.BOLD}{word}{colors.RESET}:", 1)
            sys.stdout.write(line + "\n")

    if args.format == "json":
        json.dump(report, sys.stdout, indent=2)
        sys.stdout.write("\n")
    return 1 if has_errors else 0


def cmd_hover(args: argparse.Namespace) -> int:
    """Handle the 'hover' command."""
    text = _read(args.file)
    result = _make_analyzer(args, args.file).hover(text, _position(args), uri=args.file)
    if result is None:
        sys.stderr.write("no information at this position\n")
        return 1
    if args.format == "json":
        payload = {"signature": result.signature, "documentation": result.documentation,
                   "location": None}
        if result.location is not None:
            payload["location"] = {"uri": result.location.uri,
                                   "line": result.location.line + 1,
                                   "column": result.location.column + 1}
        json.dump(payload, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 0
    sys.stdout.write(result.signature + "\n")
    if result.documentation:
        sys.stdout.write("\n" + result.documentation + "\n")
    return 0


def cmd_definition(args: argparse.Namespace) -> int:
    """Handle the 'definition' command."""
    text = _read(args.file)
    location = _make_analyzer(args, args.file).definition(text, _position(args), uri=args.file)
    if location is None:
        sys.stderr.write("no definition found\n")
        return 1
    sys.stdout.write(f"{location.uri or args.file}:{location.line + 1}:{location.column + 1}\n")
    return 0


def cmd_complete(args: argparse.Namespace) -> int:
    """Handle the 'complete' command."""
    text = _read(args.file)
    items = _make_analyzer(args, args.file).complete(text, _position(args), uri=args.file)
    if args.format == "json":
        json.dump([{"label": i.label, "kind": i.kind.value, "detail": i.detail,
                    "documentation": i.documentation} for i in items],
                  sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 0
    width = max((len(i.label) for i in items), default=0)
    for item in items:
        sys.stdout.write(f"{item.label:<{width}}  {item.kind.value:<12} {item.detail}\n")
    return 0


def cmd_rules(args: argparse.Namespace) -> int:
    """Handle the 'rules' command."""
    for rule in sorted(RULES.values(), key=lambda r: r.code):
        sys.stdout.write(f"{rule.code}  {rule.severity.value:<8} {rule.name:<26} {rule.description}\n")
    return 0


# ═══════════════════════════════════════════════════════════════════════════
# ARGUMENT PARSER
# ═══════════════════════════════════════════════════════════════════════════


def _add_position_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", help="Polyloft source file")
    parser.add_argument("line", type=int, help="1-based line number")
    parser.add_argument("column", type=int, help="1-based column number")
    parser.add_argument("-v", "--verbose", action="store_true", default=False,
                        help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the analyzer CLI."""
    parser = argparse.ArgumentParser(
        prog="polyloft-analyzer",
        description=__description__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              %(prog)s check src/main.pf
              %(prog)s check --format json src/*.pf
              %(prog)s hover src/main.pf 12 9
              %(prog)s complete src/main.pf 20 14
        """),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # ── check ────────────────────────────────────────────────────────────
    p_check = subparsers.add_parser(
        "check",
        help="Report diagnostics for Polyloft files",
        description="Analyse each file and print its diagnostics. Exits with "
                    "status 1 when any error is reported.",
    )
    p_check.add_argument("files", nargs="+", help="Files to analyse ('-' for stdin)")
    p_check.add_argument("--format", choices=("gcc", "json"), default="gcc",
                         help="Output format (default: gcc)")
    p_check.add_argument("--disable", action="append", metavar="RULE",
                         help="Disable a rule by name or code (repeatable)")
    p_check.add_argument("--indent-width", type=int, default=4,
                         help="Expected indentation width (default: 4)")
    p_check.add_argument("--no-indentation", action="store_true", default=False,
                         help="Skip the indentation hint")
    p_check.add_argument("--max-diagnostics", type=int, default=0,
                         help="Stop after N diagnostics per file (0 = unlimited)")
    p_check.add_argument("-v", "--verbose", action="store_true", default=False,
                         help="Enable debug logging")
    p_check.set_defaults(func=cmd_check)

    # ── hover ────────────────────────────────────────────────────────────
    p_hover = subparsers.add_parser("hover", help="Show the signature at a position")
    _add_position_arguments(p_hover)
    p_hover.add_argument("--format", choices=("text", "json"), default="text")
    p_hover.set_defaults(func=cmd_hover)

    # ── definition ───────────────────────────────────────────────────────
    p_def = subparsers.add_parser("definition", help="Show where a symbol is declared")
    _add_position_arguments(p_def)
    p_def.set_defaults(func=cmd_definition)

    # ── complete ─────────────────────────────────────────────────────────
    p_complete = subparsers.add_parser("complete", help="List completions at a position")
    _add_position_arguments(p_complete)
    p_complete.add_argument("--format", choices=("text", "json"), default="text")
    p_complete.set_defaults(func=cmd_complete)

    # ── rules ────────────────────────────────────────────────────────────
    p_rules = subparsers.add_parser("rules", help="List diagnostic rules")
    p_rules.set_defaults(func=cmd_rules)

    return parser


# ═══════════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════════


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the analyzer CLI.

    Parameters
    ----------
    argv : sequence of str, optional
        Command-line arguments. Defaults to sys.argv[1:].

    Returns
    -------
    int
        Exit code (0 = success, 1 = errors reported, 2 = usage or
        internal failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(getattr(args, "verbose", False))

    try:
        return args.func(args)
    except KeyboardInterrupt:
        sys.stderr.write("\nInterrupted.\n")
        return 130
    except BrokenPipeError:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return 0
    except (AnalyzerError, ValueError, OSError) as e:
        sys.stderr.write(f"Error: {e}\n")
        return 2
    except Exception as e:
        sys.stderr.write(f"\nInternal error: {e}\n")
        traceback.print_exc()
        return 2


if __name__ == "__main__":
    sys.exit(main())
