"""Intent fingerprints and efficiency scoring for tool trajectories."""

import hashlib
import re
from typing import Iterable, Sequence, Tuple

_NON_WORD = re.compile(r"[^a-z0-9\s]")

# (max iterations, score) buckets, checked in order
DEFAULT_EFFICIENCY_BUCKETS: Tuple[Tuple[int, float], ...] = ((2, 1.0), (5, 0.7))
DEFAULT_EFFICIENCY_FLOOR = 0.4

LABEL_MAX_CHARS = 60


def compute_intent_hash(message: str, tool_names: Iterable[str]) -> str:
    """
    Fingerprint a request by its significant words and the tools it used.

    Two requests that mention the same words (longer than three letters)
    and touch the same set of tools share an intent.
    """
    words = sorted({w for w in _NON_WORD.sub("", message.lower()).split() if len(w) > 3})
    message_sig = "_".join(words[:10])
    tool_sig = "+".join(sorted(set(tool_names)))
    digest = hashlib.sha1(f"{message_sig}|{tool_sig}".encode("utf-8")).hexdigest()
    return f"intent_{digest[:12]}"


def intent_label(message: str) -> str:
    if len(message) <= LABEL_MAX_CHARS:
        return message
    return message[: LABEL_MAX_CHARS - 3] + "..."


def efficiency_score(
    iterations: int,
    buckets: Sequence[Tuple[int, float]] = DEFAULT_EFFICIENCY_BUCKETS,
    floor: float = DEFAULT_EFFICIENCY_FLOOR,
) -> float:
    for max_iterations, score in buckets:
        if iterations <= max_iterations:
            return score
    return floor
