"""Author list helpers.

Catalog payloads deliver authors as dicts with a ``name`` key (PubMed
esummary), as plain strings, or as a single string; records always store
them as ``List[str]``. Overlap checks compare lower-cased surnames only.
"""

from typing import Any, Iterable, List, Optional, Set


def normalize_authors(authors: Any) -> List[str]:
    """Flatten catalog author data into display names, order preserved.

    >>> normalize_authors([{"name": "Smith J", "authtype": "Author"}, "Lee K"])
    ['Smith J', 'Lee K']
    >>> normalize_authors("Doe J")
    ['Doe J']
    """
    if isinstance(authors, str):
        authors = [authors]
    if not isinstance(authors, list):
        return []

    names = (a.get("name") if isinstance(a, dict) else a for a in authors)
    return [str(n).strip() for n in names if n and str(n).strip()]


def surname_key(author: str) -> Optional[str]:
    """Lower-cased surname of a display name, or None if blank.

    "Surname, Given" yields the part before the comma; any other form
    yields the last word.

    >>> surname_key("John Smith")
    'smith'
    >>> surname_key("Smith, J")
    'smith'
    """
    name = (author or "").strip()
    if not name:
        return None

    head, comma, _ = name.partition(",")
    if comma and head.strip():
        return head.strip().lower()
    return name.split()[-1].lower()


def _surnames(authors: Iterable[str]) -> Set[str]:
    return {key for key in map(surname_key, authors) if key}


def authors_overlap(
    authors_a: Optional[Iterable[str]], authors_b: Optional[Iterable[str]]
) -> bool:
    """True iff both lists are non-empty and share a surname."""
    if not authors_a or not authors_b:
        return False
    return bool(_surnames(authors_a) & _surnames(authors_b))
