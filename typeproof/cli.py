"""
Command-line entry point.

    typeproof hash "The quick  brown fox"
    echo '[[120, 0], [95, 1]]' | typeproof encode
    typeproof decode AgB4AAA...
    typeproof score --prompt "ab" --events-b64 AgB4AAA...
    typeproof serve --config typeproof.yaml
"""

from __future__ import annotations

import argparse
import base64
import json
import logging
import os
import sys
from typing import Optional, Sequence

from .core.codec import decode_events, encode_events, events_from_pairs
from .core.errors import TypeProofError
from .core.prompt import normalize_prompt, prompt_hash
from .core.scoring import MIN_DT_MS, compute_stats, timing_warnings
from .state.canonical import canonical_json_bytes, decode_base64_strict


def _print_json(obj: object) -> None:
    sys.stdout.write(canonical_json_bytes(obj).decode("utf-8") + "\n")


def _cmd_hash(args: argparse.Namespace) -> int:
    normalized = normalize_prompt(args.prompt)
    _print_json(
        {
            "normalized": normalized.decode("ascii"),
            "prompt_hash_hex": prompt_hash(normalized).hex(),
        }
    )
    return 0


def _cmd_encode(args: argparse.Namespace) -> int:
    text = args.events if args.events is not None else sys.stdin.read()
    try:
        pairs = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TypeProofError(f"events must be a JSON list of [dt_ms, key] pairs: {exc}") from exc
    if not isinstance(pairs, list):
        raise TypeProofError("events must be a JSON list of [dt_ms, key] pairs")
    encoded = encode_events(events_from_pairs(pairs))
    sys.stdout.write(base64.b64encode(encoded).decode("ascii") + "\n")
    return 0


def _cmd_decode(args: argparse.Namespace) -> int:
    events = decode_events(decode_base64_strict(args.events_b64, "events"))
    _print_json([[e.dt_ms, e.key] for e in events])
    return 0


def _cmd_score(args: argparse.Namespace) -> int:
    events = decode_events(decode_base64_strict(args.events_b64, "events"))
    stats = compute_stats(args.prompt, events)
    out = stats.to_dict()
    out["warnings"] = timing_warnings(stats, events, min_dt_ms=args.min_dt_ms)
    _print_json(out)
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    from .integration.api_server import serve
    from .integration.config import load_config

    return serve(load_config(args.config))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="typeproof", description="Typing replay encoding, scoring and proof service")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("TYPEPROOF_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO or $TYPEPROOF_LOG_LEVEL)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("hash", help="Normalize a prompt and print its digest")
    p.add_argument("prompt")
    p.set_defaults(func=_cmd_hash)

    p = sub.add_parser("encode", help="Encode [[dt_ms, key], ...] JSON as base64 replay bytes")
    p.add_argument("--events", default=None, help="JSON events (default: read stdin)")
    p.set_defaults(func=_cmd_encode)

    p = sub.add_parser("decode", help="Decode base64 replay bytes to JSON events")
    p.add_argument("events_b64")
    p.set_defaults(func=_cmd_decode)

    p = sub.add_parser("score", help="Preview the score of a replay (timing checks are warnings only)")
    p.add_argument("--prompt", required=True)
    p.add_argument("--events-b64", required=True)
    p.add_argument("--min-dt-ms", type=int, default=MIN_DT_MS)
    p.set_defaults(func=_cmd_score)

    p = sub.add_parser("serve", help="Run the proof HTTP API")
    p.add_argument("--config", default=None, help="YAML config file (default: $TYPEPROOF_CONFIG)")
    p.set_defaults(func=_cmd_serve)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except TypeProofError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
