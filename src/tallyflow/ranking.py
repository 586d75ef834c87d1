import heapq
from collections.abc import Mapping


def find_top_words(counts: Mapping[str, int], k: int) -> list[tuple[str, int]]:
    """
    Return the `k` most frequent words, highest count first.

    Parameters
    ----------
    counts : Mapping[str, int]
        Word frequency table, e.g. ``BatchResult.counts``
    k : int
        Number of entries to return (non-negative)

    Notes
    -----
    Words with equal counts are ordered alphabetically, so the
    result does not depend on the table's iteration order.
    """
    if k < 0:
        raise ValueError(f"k must be non-negative: {k}")
    return heapq.nsmallest(k, counts.items(), key=lambda item: (-item[1], item[0]))
