"""
Text and Name Similarity
========================
Helpers shared by the corroborated and author-year linking steps.
"""

import difflib
import re
import unicodedata
from typing import List, Optional, Set, Tuple

# Words that show up between surnames but never are one
NAME_STOPWORDS = {
    "and", "et", "al", "see", "also", "eg", "cf", "ie", "in", "press",
}

_NAME_TOKEN = re.compile(r"[^\W\d_][^\W\d_'\-]+", re.UNICODE)
_YEAR = re.compile(r"\b(1[89]\d{2}|20\d{2})([a-z])?\b")
_MARKER_NOISE = re.compile(r"[\s\[\]\(\)]+")


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_marker(text: Optional[str]) -> str:
    """Lowercase, strip accents, drop whitespace and enclosing punctuation"""
    if not text:
        return ""
    return _MARKER_NOISE.sub("", strip_accents(text).lower()).replace("–", "-")


def text_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity of two short strings in [0, 1].

    Exact match 1.0, containment 0.9, otherwise SequenceMatcher ratio.
    """
    na, nb = normalize_marker(a), normalize_marker(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    if na in nb or nb in na:
        return 0.9
    return difflib.SequenceMatcher(None, na, nb).ratio()


def title_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Word-level title similarity, punctuation and case ignored"""
    if not a or not b:
        return 0.0
    wa = " ".join(re.findall(r"\w+", strip_accents(a).lower()))
    wb = " ".join(re.findall(r"\w+", strip_accents(b).lower()))
    if not wa or not wb:
        return 0.0
    return difflib.SequenceMatcher(None, wa, wb).ratio()


def name_tokens(text: Optional[str]) -> List[str]:
    """Normalized candidate surname tokens (initials and stopwords dropped)"""
    if not text:
        return []
    out = []
    for tok in _NAME_TOKEN.findall(strip_accents(text)):
        low = tok.lower().strip("'-")
        if len(low) < 2 or low in NAME_STOPWORDS:
            continue
        out.append(low)
    return out


def first_author_tokens(authors: Optional[str]) -> Set[str]:
    """
    Tokens of the first author in a bibliography author string.

    "Smith, J., Jones, K." -> {"smith"}; "J. Smith and K. Jones" -> {"smith"}
    """
    if not authors:
        return set()
    chunk = re.split(r";|\s+and\s+|&", authors, maxsplit=1)[0]
    chunk = chunk.split(",")[0]
    return set(name_tokens(chunk))


def parse_year(text: Optional[str]) -> Optional[int]:
    """First plausible publication year in text, suffix letter ignored"""
    if not text:
        return None
    m = _YEAR.search(text)
    return int(m.group(1)) if m else None


def parse_author_year(raw_text: Optional[str]) -> Tuple[List[str], Optional[int]]:
    """
    Split an author-year marker into surnames and year.

    "Smith et al., 2020a" -> (["smith"], 2020)
    "Smith and Jones, 2019" -> (["smith", "jones"], 2019)
    """
    if not raw_text:
        return [], None
    m = None
    for m in _YEAR.finditer(raw_text):
        pass
    if m is None:
        return name_tokens(raw_text), None
    return name_tokens(raw_text[:m.start()]), int(m.group(1))
