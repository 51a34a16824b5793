"""Drift guard that rejects corrections straying too far from the source text."""

from typing import Optional

from .config import (
    DRIFT_DISTANCE_DIVISOR,
    DRIFT_LENGTH_GAP_DIVISOR,
    DRIFT_MIN_DISTANCE,
    DRIFT_MIN_LENGTH_GAP,
)


def levenshtein_distance(a: str, b: str) -> int:
    """
    Edit distance between two strings over code points.

    Single-row dynamic programming: O(len(a) * len(b)) time, O(len(b)) space.

    Args:
        a: First string
        b: Second string

    Returns:
        Minimum number of insertions, deletions and substitutions
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, a_char in enumerate(a):
        current = [i + 1] + [0] * len(b)
        for j, b_char in enumerate(b):
            cost = 0 if a_char == b_char else 1
            current[j + 1] = min(
                previous[j + 1] + 1,
                current[j] + 1,
                previous[j] + cost,
            )
        previous = current

    return previous[len(b)]


def drift_rejection_reason(
    source: str, output: str, quality_scale: float = 1.0
) -> Optional[str]:
    """
    Explain why output is not an acceptable correction of source.

    Args:
        source: Sanitized text sent to the model
        output: Sanitized model output
        quality_scale: Edit budget scale of the recognizer model, in [0, 1]

    Returns:
        None when the correction is acceptable, otherwise a short reason
    """
    if source == output:
        return None

    # split keeps empty lines, so trailing newlines count
    if len(source.split("\n")) != len(output.split("\n")):
        return "line count changed"

    if not source or not output:
        return "empty text"

    max_length_gap = max(DRIFT_MIN_LENGTH_GAP, len(source) // DRIFT_LENGTH_GAP_DIVISOR)
    if abs(len(source) - len(output)) > max_length_gap:
        return f"length gap above {max_length_gap}"

    max_distance = max(
        DRIFT_MIN_DISTANCE, int(len(source) / DRIFT_DISTANCE_DIVISOR * quality_scale)
    )
    distance = levenshtein_distance(source, output)
    if distance > max_distance:
        return f"edit distance {distance} above {max_distance}"

    return None


def is_reasonable_correction(source: str, output: str, quality_scale: float = 1.0) -> bool:
    """Whether output stays within the drift budget of source."""
    return drift_rejection_reason(source, output, quality_scale) is None
