"""
Created: Oct 18, 2026
Objective: Console messages with severity prefixes.
"""
import sys

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = bool(enabled)


def is_verbose() -> bool:
    return _verbose


def debug(msg: str) -> None:
    if _verbose:
        print(f"DEBUG: {msg}")


def info(msg: str) -> None:
    print(f"INFO: {msg}")


def warn(msg: str) -> None:
    print(f"WARN: {msg}", file=sys.stderr)


def error(msg: str) -> None:
    print(f"ERROR: {msg}", file=sys.stderr)
