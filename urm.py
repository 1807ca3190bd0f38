"""URM interpreter entry point."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from assembler import URMAssemblyError
from extensions import URMExtensionError, load_hooks
from interpreter import Interpreter, TracebackFormatter, URMRuntimeError
from lexer import URMMalformedNumberError, URMParseError


def _print_trace(interpreter: Interpreter) -> None:
    for line in interpreter.logger.dump():
        print(line, file=sys.stderr)


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Unlimited register machine interpreter")
    parser.add_argument("program", help="Source file path or literal source with -source")
    parser.add_argument("values", nargs="*", help="Initial values for registers 0, 1, 2, ...")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Record register snapshots for every step")
    parser.add_argument("--trace", action="store_true", help="Print the executed steps to stderr after the run")
    parser.add_argument("--max-steps", type=int, default=None, help="Abort after this many executed instructions")
    parser.add_argument("--hooks", action="append", default=[], help="Path to a hook module defining register(hooks) (repeatable)")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    args = parser.parse_args(argv)

    if args.max_steps is not None and args.max_steps < 0:
        print("--max-steps must be non-negative", file=sys.stderr)
        return 1

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    try:
        hooks = load_hooks(args.hooks)
    except URMExtensionError as error:
        print(f"HookError: {error}", file=sys.stderr)
        return 1

    interpreter = Interpreter(
        source=source_text,
        filename=filename,
        verbose=args.verbose,
        hooks=hooks,
        max_steps=args.max_steps,
    )
    try:
        interpreter.run_and_output(args.values)
    except URMParseError as error:
        print(f"ParseError: {error}", file=sys.stderr)
        print(error.caret(), file=sys.stderr)
        return 1
    except (URMAssemblyError, URMMalformedNumberError) as error:
        print(f"{error.__class__.__name__}: {error}", file=sys.stderr)
        return 1
    except URMRuntimeError as error:
        if args.trace:
            _print_trace(interpreter)
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    if args.trace:
        _print_trace(interpreter)
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
