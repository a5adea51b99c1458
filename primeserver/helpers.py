"""Small parsing helpers shared by the daemons."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple, TypeVar

T = TypeVar("T")

DEFAULT_DRAIN_SECONDS = 28
DEFAULT_SHUTDOWN_SECONDS = 1


def split(
    s: str,
    delim: str,
    skip_empty: bool = True,
    transform: Optional[Callable[[str], T]] = None,
) -> List[T]:
    """Split ``s`` on ``delim``, optionally dropping empty parts and transforming the rest."""
    parts = s.split(delim)
    if skip_empty:
        parts = [part for part in parts if part]
    if transform is None:
        return list(parts)  # type: ignore[return-value]
    return [transform(part) for part in parts]


def _to_unsigned(text: str) -> int:
    value = int(text.strip())
    if value < 0:
        raise ValueError(f"expected an unsigned integer, got {text!r}")
    return value


def parse_quiesce_config(
    config: str,
    drain_seconds: int = DEFAULT_DRAIN_SECONDS,
    shutdown_seconds: int = DEFAULT_SHUTDOWN_SECONDS,
) -> Tuple[int, int]:
    """Parse ``"drain,shutdown"`` into a pair of seconds, filling in defaults for missing parts."""
    parts = split(config, ",", True, _to_unsigned)
    drain = parts[0] if len(parts) > 0 else drain_seconds
    shutdown = parts[1] if len(parts) > 1 else shutdown_seconds
    return drain, shutdown