"""Search-string builder for Nominatim address autocomplete.

Nominatim matches whole words poorly against abbreviations and partially
typed input, so raw keystrokes are rewritten before they are sent:
abbreviations are expanded and short words get a trailing wildcard.
"""

import re

# ---------------------------------------------------------------------------
# Abbreviation tables
# ---------------------------------------------------------------------------

DIRECTION_ABBREVIATIONS = {
    "n": "north",
    "s": "south",
    "e": "east",
    "w": "west",
    "ne": "northeast",
    "nw": "northwest",
    "se": "southeast",
    "sw": "southwest",
}

STREET_TYPE_ABBREVIATIONS = {
    "st": "street",
    "ave": "avenue",
    "av": "avenue",
    "blvd": "boulevard",
    "dr": "drive",
    "rd": "road",
    "ln": "lane",
    "ct": "court",
    "cir": "circle",
    "pl": "place",
    "pkwy": "parkway",
    "hwy": "highway",
    "sq": "square",
    "ter": "terrace",
    "trl": "trail",
    "way": "way",
}

WILDCARD = "*"

# ASCII only: accented letters and full-width digits are stripped, not kept.
_NON_WORD = re.compile(r"[^\w]", re.ASCII)
_DIGITS = re.compile(r"^\d+$", re.ASCII)
_SHORT_WORD = re.compile(r"^[a-zA-Z]{2,4}$")


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _expand_token(token: str) -> str:
    """Rewrite one cleaned token; the first matching rule wins."""
    if _DIGITS.match(token):
        # House numbers and zip fragments
        return token
    if token in DIRECTION_ABBREVIATIONS:
        return DIRECTION_ABBREVIATIONS[token]
    if token in STREET_TYPE_ABBREVIATIONS:
        return STREET_TYPE_ABBREVIATIONS[token]
    if _SHORT_WORD.match(token):
        return token + WILDCARD
    return token


def normalize(raw: str) -> str:
    """Turn raw user input into an optimized Nominatim query.

    Returns an empty string when *raw* has no word characters at all;
    callers treat that as "nothing to search for".

    >>> normalize("123 Main St.")
    '123 main* street'
    """
    text = re.sub(r"\s+", " ", raw.replace(",", " ")).strip().lower()

    words = []
    for token in text.split():
        clean = _NON_WORD.sub("", token)
        if not clean:
            continue
        words.append(_expand_token(clean))

    return " ".join(words)


# Name used by the autocomplete pipeline
build_smart_query = normalize
