#!/usr/bin/env python3
# CUI // SP-PROPIN
# Controlled by: GovProposal Portal
# CUI Category: PROPIN
# Distribution: D
# POC: GovProposal System Administrator
"""String similarity helpers used by the duplicate detectors.

Two measures are provided:
    similarity        - Levenshtein ratio, (maxLen - distance) / maxLen
    dice_coefficient  - character-bigram set overlap, used for company names

Neither function normalizes case or whitespace; callers lower-case and
strip before comparing.
"""


def levenshtein_distance(a, b):
    """Minimum number of single-character edits turning ``a`` into ``b``.

    Insert, delete and substitute each cost 1. Uses two rolling rows so
    memory stays O(min(len(a), len(b))).
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def similarity(a, b):
    """Levenshtein similarity ratio in [0, 1].

    Args:
        a: First string.
        b: Second string.

    Returns:
        1.0 for identical strings (including two empty strings), 0.0 when
        exactly one is empty, otherwise (maxLen - distance) / maxLen.
    """
    a = a or ""
    b = b or ""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longest = max(len(a), len(b))
    return (longest - levenshtein_distance(a, b)) / longest


def _bigrams(text):
    return {text[i:i + 2] for i in range(len(text) - 1)}


def dice_coefficient(a, b):
    """Sørensen–Dice coefficient over character-bigram sets, in [0, 1]."""
    a = a or ""
    b = b or ""
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    left = _bigrams(a)
    right = _bigrams(b)
    return (2.0 * len(left & right)) / (len(left) + len(right))
