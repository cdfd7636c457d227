from typing import Dict, Hashable, Iterable, Optional, Tuple


def competition_rank(entries: Iterable[Tuple[Hashable, float]]) -> Dict[Hashable, int]:
    """
    Standard competition ranking over ``(id, score)`` pairs.

    Tied scores share a position and the next distinct score takes its 1-based
    place in the sorted order, so [90, 90, 80] ranks as [1, 1, 3].
    Equal scores keep their input order.
    """
    ordered = sorted(entries, key=lambda entry: entry[1] or 0, reverse=True)

    positions = {}
    last_score = None
    last_rank = 0
    for index, (key, score) in enumerate(ordered):
        if last_score is not None and score == last_score:
            positions[key] = last_rank
        else:
            last_rank = index + 1
            last_score = score
            positions[key] = last_rank
    return positions


def subject_positions(totals: Iterable[Tuple[Hashable, Optional[float]]]) -> Dict[Hashable, str]:
    """
    Positions for a single subject's score sheet.

    The rank only advances when a total drops below the previous one. Pupils
    with no positive total are left unranked ("").
    """
    ordered = sorted(
        ((key, float(total or 0)) for key, total in totals),
        key=lambda entry: entry[1],
        reverse=True,
    )

    positions = {}
    last_total = None
    last_rank = 0
    for seen, (key, total) in enumerate(ordered, start=1):
        if last_total is None or total < last_total:
            last_rank = seen
            last_total = total
        positions[key] = str(last_rank) if total > 0 else ""
    return positions
