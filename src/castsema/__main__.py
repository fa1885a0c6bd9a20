"""CLI entry point: run `castsema analyze file.sema` or `python -m castsema analyze file.sema`."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

from .utils.config import EXIT_FATAL


def _type_table(report) -> str:
    rows = []
    for record in report.expressions:
        where = f"{record.location.line}:{record.location.column}" if record.location else "-"
        value_category = "lvalue" if record.is_lvalue else "rvalue"
        rows.append((str(record.index), where, record.kind.value, record.text, str(record.type), value_category))
    if not rows:
        return ""
    widths = [max(len(r[i]) for r in rows) for i in range(len(rows[0]) - 1)]
    lines = []
    for row in rows:
        cells = [cell.ljust(width) for cell, width in zip(row, widths)]
        lines.append("  ".join(cells + [row[-1]]))
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    import argparse
    from .analysis.report import serialize_report
    from .compiler.driver import AnalysisDriver
    from .utils.io_utils import read_source_file

    parser = argparse.ArgumentParser(prog="castsema", description="Type resolution and cast classification.")
    commands = parser.add_subparsers(dest="command", required=True)
    analyze = commands.add_parser("analyze", help="Analyze a source file")
    analyze.add_argument("input", type=Path, help="Path to the source file")
    analyze.add_argument("--strict", action="store_true", help="Treat non-fatal findings as fatal (exit code 2)")
    analyze.add_argument("--format", choices=("text", "sexpr"), default="text", help="Report format (default: text)")
    analyze.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    path = args.input
    if not path.exists():
        sys.stderr.write(f"castsema: error: file not found: {path}\n")
        return EXIT_FATAL
    if not path.is_file():
        sys.stderr.write(f"castsema: error: not a file: {path}\n")
        return EXIT_FATAL
    try:
        source = read_source_file(path)
    except (OSError, UnicodeDecodeError) as e:
        sys.stderr.write(f"castsema: error: could not read file: {e}\n")
        return EXIT_FATAL

    driver = AnalysisDriver()
    result = driver.analyze(source, str(path), strict=args.strict)

    if args.format == "sexpr":
        sys.stdout.write(serialize_report(result.report, strict=args.strict) + "\n")
    else:
        table = _type_table(result.report)
        if table:
            sys.stdout.write(table + "\n")
        sys.stderr.write(result.format_diagnostics() + "\n")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
