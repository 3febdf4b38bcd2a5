"""Naming transforms for scaffolded resources.

Converts a resource name into every spelling the generated artifacts need:
singular and plural forms plus PascalCase, camelCase, kebab-case and
snake_case variants.  All spellings of one resource come from a single
``NamingForms`` instance so generated files can never disagree on a name.
"""

from __future__ import annotations

import re
from functools import lru_cache

from pydantic import BaseModel, ConfigDict


class InvalidNameError(ValueError):
    """Raised when a resource name is empty or not identifier-safe."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid resource name {name!r}: {reason}")


# ---------------------------------------------------------------------------
# Inflection tables
# ---------------------------------------------------------------------------

# Consulted before the regular suffix rules, in both directions.
_IRREGULAR_PLURALS: dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
    "ox": "oxen",
    "leaf": "leaves",
    "life": "lives",
    "knife": "knives",
    "wife": "wives",
    "half": "halves",
    "criterion": "criteria",
    "analysis": "analyses",
    "quiz": "quizzes",
    "status": "statuses",
    "bus": "buses",
    "alias": "aliases",
    "atlas": "atlases",
    "bias": "biases",
    "bonus": "bonuses",
    "campus": "campuses",
    "canvas": "canvases",
    "census": "censuses",
    "gas": "gases",
    "lens": "lenses",
    "virus": "viruses",
    "cache": "caches",
    "movie": "movies",
    "cookie": "cookies",
    "menu": "menus",
}

_IRREGULAR_SINGULARS: dict[str, str] = {
    plural: singular for singular, plural in _IRREGULAR_PLURALS.items()
}

_UNCOUNTABLE: frozenset[str] = frozenset({
    "data",
    "equipment",
    "feedback",
    "fish",
    "information",
    "metadata",
    "news",
    "series",
    "sheep",
    "software",
    "species",
})

_IDENTIFIER_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")

# Acronym runs ("HTTP" in "HTTPRequest"), capitalised or lowercase words, digits.
_TOKEN_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


# ---------------------------------------------------------------------------
# Word-level inflection
# ---------------------------------------------------------------------------

def singularize(word: str) -> str:
    """Return the singular of a single lowercase word.

    Idempotent: ``singularize(singularize(w)) == singularize(w)``.
    """
    lower = word.lower()
    if lower in _UNCOUNTABLE or lower in _IRREGULAR_PLURALS:
        return lower
    if lower in _IRREGULAR_SINGULARS:
        return _IRREGULAR_SINGULARS[lower]
    if lower.endswith("ies") and len(lower) > 3:
        return lower[:-3] + "y"
    if lower.endswith(("sses", "shes", "ches", "xes", "zzes")):
        return lower[:-2]
    if lower.endswith(("ss", "us", "is")):
        return lower
    if lower.endswith("s") and len(lower) > 1:
        return lower[:-1]
    return lower


def pluralize(word: str) -> str:
    """Return the plural of a single word (singular or already plural)."""
    singular = singularize(word)
    if singular in _UNCOUNTABLE:
        return singular
    if singular in _IRREGULAR_PLURALS:
        return _IRREGULAR_PLURALS[singular]
    if singular.endswith("y") and len(singular) > 1 and singular[-2] not in "aeiou":
        return singular[:-1] + "ies"
    if singular.endswith(("s", "x", "z", "ch", "sh")):
        return singular + "es"
    return singular + "s"


# ---------------------------------------------------------------------------
# Tokenisation and case joins
# ---------------------------------------------------------------------------

def tokenize(name: str) -> list[str]:
    """Split *name* on separator, case and digit boundaries into lowercase tokens.

    ``"BlogPost"``, ``"blog_post"``, ``"blog-post"`` and ``"blogPost"`` all
    yield ``["blog", "post"]``.
    """
    tokens: list[str] = []
    for chunk in re.split(r"[_\-\s]+", name):
        tokens.extend(match.lower() for match in _TOKEN_RE.findall(chunk))
    return tokens


def pascal_case(value: str | list[str]) -> str:
    tokens = tokenize(value) if isinstance(value, str) else value
    return "".join(token.capitalize() for token in tokens)


def camel_case(value: str | list[str]) -> str:
    pascal = pascal_case(value)
    return pascal[:1].lower() + pascal[1:]


def kebab_case(value: str | list[str]) -> str:
    tokens = tokenize(value) if isinstance(value, str) else value
    return "-".join(tokens)


def snake_case(value: str | list[str]) -> str:
    tokens = tokenize(value) if isinstance(value, str) else value
    return "_".join(tokens)


# ---------------------------------------------------------------------------
# NamingForms
# ---------------------------------------------------------------------------

class NamingForms(BaseModel):
    """Every spelling of one resource name.

    ``singular`` and ``plural`` are the camelCase identifier forms; the other
    fields are the case variants of each.
    """

    model_config = ConfigDict(frozen=True)

    tokens: tuple[str, ...]
    singular: str
    plural: str
    pascal: str
    pascal_plural: str
    camel: str
    camel_plural: str
    kebab: str
    kebab_plural: str
    snake: str
    snake_plural: str


def validate_identifier(name: str) -> str:
    """Return *name* unchanged if it is identifier-safe, else raise ``InvalidNameError``."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidNameError(str(name), "name must not be empty")
    if not _IDENTIFIER_RE.match(name):
        raise InvalidNameError(
            name, "expected letters, digits, '_' or '-' starting with a letter"
        )
    return name


def forms(name: str) -> NamingForms:
    """Derive all naming forms for *name*.

    Raises:
        InvalidNameError: If *name* is empty or not identifier-safe.
    """
    return _derive(validate_identifier(name))


@lru_cache(maxsize=512)
def _derive(name: str) -> NamingForms:
    raw = tokenize(name)
    if not raw:
        raise InvalidNameError(name, "name contains no word characters")

    # Inflect the last word, not a trailing number: "item2" -> "items2".
    last = max(index for index, token in enumerate(raw) if not token.isdigit())
    singular_tokens = [*raw[:last], singularize(raw[last]), *raw[last + 1:]]
    plural_tokens = [*raw[:last], pluralize(raw[last]), *raw[last + 1:]]

    return NamingForms(
        tokens=tuple(singular_tokens),
        singular=camel_case(singular_tokens),
        plural=camel_case(plural_tokens),
        pascal=pascal_case(singular_tokens),
        pascal_plural=pascal_case(plural_tokens),
        camel=camel_case(singular_tokens),
        camel_plural=camel_case(plural_tokens),
        kebab=kebab_case(singular_tokens),
        kebab_plural=kebab_case(plural_tokens),
        snake=snake_case(singular_tokens),
        snake_plural=snake_case(plural_tokens),
    )
