"""Levenshtein edit distance."""

from __future__ import annotations


def edit_distance(first: str, second: str) -> int:
    """Minimum number of single-character inserts, deletes and substitutions.

    Classic dynamic programming over the (n+1) x (m+1) table, keeping only
    the previous row. The shorter string indexes the row so memory stays
    O(min(n, m)).
    """
    if first == second:
        return 0
    if len(first) < len(second):
        first, second = second, first
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, a in enumerate(first, start=1):
        current = [i]
        for j, b in enumerate(second, start=1):
            if a == b:
                current.append(previous[j - 1])
            else:
                current.append(
                    1
                    + min(
                        previous[j],  # deletion
                        current[j - 1],  # insertion
                        previous[j - 1],  # substitution
                    )
                )
        previous = current
    return previous[-1]
