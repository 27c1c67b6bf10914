from __future__ import annotations


def normalize(s: str | None) -> str:
    return " ".join((s or "").casefold().split())


def similarity(a: str | None, b: str | None) -> float:
    """
    Jaccard overlap of the character sets of two strings, in [0, 1].

    Whitespace and case are ignored; 0 if either side is empty, 1 if equal.
    """
    na, nb = normalize(a), normalize(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    sa = set(na.replace(" ", ""))
    sb = set(nb.replace(" ", ""))
    union = sa | sb
    if not union:
        return 0.0
    return len(sa & sb) / len(union)
