"""Bijection CLI — compile a declaration file to Python conversion functions."""

from __future__ import annotations

import json
import logging
import sys

from . import extract_pragmas, parse
from .ast import ArmList
from .diagnose import DeclarationError
from .emit import EmitOptions, emit_python, render_shape, to_source
from .normalize import normalize

PHASES: list[str] = ["parse", "normalize"]

USAGE: str = """\
bijection [OPTIONS] [INPUT] [-o OUTPUT]

Compile a bijection declaration into two Python conversion functions.

Options:
  --stop-at PHASE         Stop after phase: parse, normalize
  --check                 Validate only; print nothing on success
  --no-attach             Do not attach the functions to their types
  --forward-name NAME     Name of the A -> B function
  --backward-name NAME    Name of the B -> A function
  --trace                 Log compiler steps to stderr
  -o, --output FILE       Write output to FILE instead of stdout
  --help                  Show this help message
"""


class _Args:
    def __init__(self) -> None:
        self.input_file: str | None = None
        self.output_file: str | None = None
        self.stop_at: str | None = None
        self.check: bool = False
        self.trace: bool = False
        self.no_attach: bool = False
        self.forward_name: str | None = None
        self.backward_name: str | None = None


def parse_args(argv: list[str]) -> tuple[_Args | None, int]:
    """Returns (args, 0) or (None, exit_code) when the process should stop."""
    args = _Args()
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return (None, 0)
        if arg in ("--stop-at", "--forward-name", "--backward-name", "-o", "--output"):
            if i + 1 >= len(argv):
                print("error: " + arg + " requires an argument", file=sys.stderr)
                return (None, 2)
            value = argv[i + 1]
            if arg == "--stop-at":
                args.stop_at = value
            elif arg == "--forward-name":
                args.forward_name = value
            elif arg == "--backward-name":
                args.backward_name = value
            else:
                args.output_file = value
            i += 2
        elif arg == "--check":
            args.check = True
            i += 1
        elif arg == "--trace":
            args.trace = True
            i += 1
        elif arg == "--no-attach":
            args.no_attach = True
            i += 1
        elif arg.startswith("-") and arg != "-":
            print("error: unknown flag '" + arg + "'", file=sys.stderr)
            return (None, 2)
        elif args.input_file is None:
            args.input_file = None if arg == "-" else arg
            i += 1
        else:
            print("error: unexpected argument '" + arg + "'", file=sys.stderr)
            return (None, 2)
    if args.stop_at is not None and args.stop_at not in PHASES:
        print("error: unknown phase '" + args.stop_at + "'", file=sys.stderr)
        return (None, 2)
    return (args, 0)


def read_source(input_file: str | None) -> tuple[str, int]:
    """Read source from file or stdin. Returns (source, exit_code)."""
    if input_file is not None:
        try:
            with open(input_file, "rb") as f:
                raw = f.read()
        except OSError:
            print("error: cannot open '" + input_file + "'", file=sys.stderr)
            return ("", 1)
    else:
        raw = sys.stdin.buffer.read()
    try:
        return (raw.decode("utf-8"), 0)
    except ValueError:
        print("error: invalid utf-8 in input", file=sys.stderr)
        return ("", 1)


def write_output(output: str, output_file: str | None) -> int:
    """Write output to file or stdout. Returns 0 on success, 1 on error."""
    if output_file is not None:
        try:
            with open(output_file, "w") as f:
                f.write(output)
        except OSError:
            print("error: cannot write '" + output_file + "'", file=sys.stderr)
            return 1
        return 0
    sys.stdout.write(output)
    return 0


def _arms_to_dict(arms: ArmList) -> dict[str, object]:
    return {
        "from": arms.source_type.text,
        "to": arms.target_type.text,
        "arms": [
            {
                "clause": arm.clause,
                "match": render_shape(arm.pattern),
                "produce": render_shape(arm.value),
            }
            for arm in arms
        ],
    }


def run_pipeline(source: str, args: _Args) -> tuple[int, str]:
    options = extract_pragmas(source, EmitOptions())
    if args.no_attach:
        options.attach = False
    if args.forward_name is not None:
        options.forward_name = args.forward_name
    if args.backward_name is not None:
        options.backward_name = args.backward_name
    try:
        decl = parse(source)
        if args.stop_at == "parse":
            return (0, to_source(decl))
        normalized = normalize(decl)
    except DeclarationError as e:
        print(e.diagnostic.render(), file=sys.stderr)
        return (1, "")
    if args.stop_at == "normalize":
        dump = {
            "forward": _arms_to_dict(normalized.forward),
            "backward": _arms_to_dict(normalized.backward),
        }
        return (0, json.dumps(dump, indent=2) + "\n")
    return (0, emit_python(normalized, options))


def main(argv: list[str] | None = None) -> int:
    args, code = parse_args(argv if argv is not None else sys.argv[1:])
    if args is None:
        return code
    if args.trace:
        logging.basicConfig(
            level=logging.DEBUG, format="%(name)s: %(message)s", stream=sys.stderr
        )
    source, code = read_source(args.input_file)
    if code != 0:
        return code
    code, output = run_pipeline(source, args)
    if code != 0 or args.check:
        return code
    return write_output(output, args.output_file)


if __name__ == "__main__":
    sys.exit(main())
