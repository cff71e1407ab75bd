#!/usr/bin/env python3
"""
Offline decoder for captured PTVO UART frames.

Each argument is one frame written as hex, with or without separators
(``64``, ``00 32``, ``41:42:43``). The script prints the state fragment the
integration would publish for it, which helps when reading sniffer logs.

Usage: python3 cli-ptvo-uart-decode.py [--json] FRAME [FRAME ...]
"""

import argparse
import json
import logging
import re
from typing import List

from ptvo import decode_frame, format_frame

HEX_SEPARATORS = re.compile(r"[\s:,-]")


def parse_hex_frame(text: str) -> bytes:
    """Turn a loosely formatted hex string into bytes."""
    cleaned = HEX_SEPARATORS.sub("", text)
    if cleaned.lower().startswith("0x"):
        cleaned = cleaned[2:]
    return bytes.fromhex(cleaned)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Decode PTVO UART frames captured as hex")
    parser.add_argument("frames", nargs="+", help="Frames to decode, one hex string each")
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the published state fragment as JSON",
    )
    return parser.parse_args()


def decode_all(frames: List[str], as_json: bool) -> int:
    failures = 0
    for text in frames:
        try:
            payload = parse_hex_frame(text)
        except ValueError as exc:
            print(f"[E] {text!r}: {exc}")
            failures += 1
            continue
        frame = decode_frame(payload)
        if as_json:
            print(json.dumps(frame.to_state(), ensure_ascii=False))
        else:
            print(f"{payload.hex(' '):<24} {format_frame(frame)}")
    return failures


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
    )


if __name__ == "__main__":
    configure_logging()
    cli_args = parse_args()
    raise SystemExit(1 if decode_all(cli_args.frames, cli_args.as_json) else 0)
