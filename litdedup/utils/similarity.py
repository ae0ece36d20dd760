"""Edit-distance based title similarity.

Scores are integers in [0, 100] so that they can be compared directly
against the percentage thresholds used by duplicate classification.
"""


def edit_distance(longer: str, shorter: str) -> int:
    """Levenshtein distance using a single cost row.

    The row has ``len(shorter) + 1`` cells and ``longer`` is iterated as the
    rows of the dynamic-programming table.

    Args:
        longer: The longer of the two strings
        shorter: The shorter of the two strings

    Returns:
        Minimum number of single-character edits between the strings
    """
    costs = list(range(len(shorter) + 1))

    for i in range(1, len(longer) + 1):
        last_value = i
        for j in range(1, len(shorter) + 1):
            new_value = costs[j - 1]
            if longer[i - 1] != shorter[j - 1]:
                new_value = min(new_value, last_value, costs[j]) + 1
            costs[j - 1] = last_value
            last_value = new_value
        costs[len(shorter)] = last_value

    return costs[len(shorter)]


def similarity(a: str, b: str) -> int:
    """Case-insensitive similarity between two strings.

    Args:
        a: First string
        b: Second string

    Returns:
        100 for identical (or both empty) strings, otherwise
        ``round(100 * (max_len - distance) / max_len)`` rounded half up

    Examples:
        >>> similarity("Effect of X on Y", "effect of x on y")
        100
        >>> similarity("", "")
        100
    """
    s1 = (a or "").lower()
    s2 = (b or "").lower()

    if s1 == s2:
        return 100

    longer, shorter = (s1, s2) if len(s1) >= len(s2) else (s2, s1)

    distance = edit_distance(longer, shorter)
    max_len = len(longer)

    # Integer half-up rounding keeps the score symmetric and float-free
    return (200 * (max_len - distance) + max_len) // (2 * max_len)
