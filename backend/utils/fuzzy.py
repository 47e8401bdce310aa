"""
Edit-distance helpers for typo-tolerant name matching.

Levenshtein distance counts the minimum number of single-character
insertions, deletions and substitutions needed to turn one string into
another. Two names are considered a likely typo of each other when the
distance is small (see MAX_SUGGESTION_DISTANCE in catalog.catalog).

Usage:
    from utils.fuzzy import levenshtein_distance

    levenshtein_distance("frnace", "france")  # 2
"""


def levenshtein_distance(a: str, b: str) -> int:
    """
    Compute Levenshtein distance between two strings.

    Uses the two-row dynamic programming formulation: O(len(a) * len(b))
    time, O(min(len(a), len(b))) memory.

    Args:
        a: First string
        b: Second string

    Returns:
        Number of edits to transform a into b
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Keep the shorter string in the inner loop
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current

    return previous[-1]
