"""Command-line interface for encoding and decoding FLUX."""

from __future__ import annotations

import argparse
import json
import logging
import math
import os
import sys
from pathlib import Path

from . import __version__
from .decode import decode
from .encode import encode
from .errors import FluxError
from .types import ENCODE_MODES, DecodeOptions, EncodeOptions

DEFAULT_LOG_LEVEL = os.environ.get("FLUX_LOG_LEVEL", "WARNING")

logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token count: about 4 characters per token."""
    return math.ceil(len(text) / 4)


def _read_input(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _write_output(text: str, target: str | None, label: str) -> None:
    if target:
        Path(target).write_text(text, encoding="utf-8")
        print(f"{label} to {target}")
    else:
        print(text)


def _savings(base: int, tokens: int) -> str:
    return f"{(base - tokens) / base * 100:.1f}%"


def encode_command(args: argparse.Namespace) -> int:
    data = json.loads(_read_input(args.input))
    options = EncodeOptions(
        mode=args.mode,
        indent=args.indent,
        types=args.types,
        stats=args.stats,
        compress=args.compress,
        sparse_threshold=args.sparse_threshold,
    )
    text = encode(data, options)
    _write_output(text, args.output, "Encoded")

    if args.show_savings:
        json_tokens = estimate_tokens(json.dumps(data, indent=2, ensure_ascii=False))
        compact_tokens = estimate_tokens(
            json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        )
        flux_tokens = estimate_tokens(text)

        print()
        print("=" * 60)
        print("TOKEN COMPARISON")
        print("=" * 60)
        print(f"JSON (formatted):  {json_tokens:>6} tokens")
        print(f"JSON (compact):    {compact_tokens:>6} tokens")
        print(f"FLUX:              {flux_tokens:>6} tokens")
        print(
            f"Savings:           {_savings(json_tokens, flux_tokens)} vs formatted, "
            f"{_savings(compact_tokens, flux_tokens)} vs compact"
        )
    return 0


def decode_command(args: argparse.Namespace) -> int:
    data = decode(_read_input(args.input), DecodeOptions(strict=args.strict))
    if args.pretty:
        text = json.dumps(data, indent=2, ensure_ascii=False)
    else:
        text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    _write_output(text, args.output, "Decoded")
    return 0


def stats_command(args: argparse.Namespace) -> int:
    data = json.loads(_read_input(args.input))

    formats = [
        ("JSON (formatted)", json.dumps(data, indent=2, ensure_ascii=False)),
        ("JSON (compact)", json.dumps(data, separators=(",", ":"), ensure_ascii=False)),
        ("FLUX (auto)", encode(data)),
        ("FLUX (no types)", encode(data, EncodeOptions(types=False))),
        ("FLUX (with stats)", encode(data, EncodeOptions(stats=True))),
    ]
    json_tokens = estimate_tokens(formats[0][1])

    print("=" * 70)
    print("TOKEN STATISTICS")
    print("=" * 70)
    print(f"{'Format':<30}{'Tokens':>6}{'vs JSON':>10}{'Size (bytes)':>14}")
    print("-" * 70)
    for name, text in formats:
        tokens = estimate_tokens(text)
        size = len(text.encode("utf-8"))
        print(f"{name:<30}{tokens:>6}{_savings(json_tokens, tokens):>10}{size:>14}")
    print("=" * 70)
    return 0


def validate_command(args: argparse.Namespace) -> int:
    try:
        decode(_read_input(args.input), DecodeOptions(strict=True))
    except FluxError as e:
        print("Invalid FLUX format", file=sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print("Valid FLUX format")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with encode/decode/stats/validate commands."""
    parser = argparse.ArgumentParser(
        prog="flux", description="Token-efficient serialization for JSON-like data"
    )
    parser.add_argument("--version", "-V", action="version", version=f"flux {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    encode_parser = subparsers.add_parser("encode", help="Convert JSON to FLUX")
    encode_parser.add_argument("input", help="Input JSON file or - for stdin")
    encode_parser.add_argument("--output", "-o", help="Output file (stdout if omitted)")
    encode_parser.add_argument("--mode", "-m", choices=ENCODE_MODES, default="auto")
    encode_parser.add_argument("--indent", "-i", type=int, default=2, help="Spaces per level")
    encode_parser.add_argument(
        "--no-types", dest="types", action="store_false", help="Omit type-tag lines"
    )
    encode_parser.add_argument("--stats", "-s", action="store_true", help="Add table statistics")
    encode_parser.add_argument("--compress", "-c", action="store_true", help="Add compression marker")
    encode_parser.add_argument(
        "--sparse-threshold", type=float, default=30.0, help="Null percentage for sparse fields"
    )
    encode_parser.add_argument(
        "--show-savings", action="store_true", help="Print a token comparison with JSON"
    )
    encode_parser.set_defaults(func=encode_command)

    decode_parser = subparsers.add_parser("decode", help="Convert FLUX to JSON")
    decode_parser.add_argument("input", help="Input FLUX file or - for stdin")
    decode_parser.add_argument("--output", "-o", help="Output file (stdout if omitted)")
    decode_parser.add_argument(
        "--no-strict", dest="strict", action="store_false", help="Recover from count mismatches"
    )
    decode_parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    decode_parser.set_defaults(func=decode_command)

    stats_parser = subparsers.add_parser("stats", help="Show token statistics for a JSON file")
    stats_parser.add_argument("input", help="Input JSON file")
    stats_parser.set_defaults(func=stats_command)

    validate_parser = subparsers.add_parser("validate", help="Validate a FLUX file")
    validate_parser.add_argument("input", help="Input FLUX file")
    validate_parser.set_defaults(func=validate_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = create_parser().parse_args(argv)

    logging.basicConfig(
        level="DEBUG" if args.verbose else DEFAULT_LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.debug("Running %s on %s", args.command, args.input)

    try:
        return args.func(args)
    except (FluxError, ValueError, OSError) as e:
        # json.JSONDecodeError is a ValueError
        print(f"Error: {e}", file=sys.stderr)
        return 1
