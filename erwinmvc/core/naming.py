"""
ErwinMVC Naming

Turns model and controller names into resource path segments and table names.
Generators and the convention router both derive their URLs from here.
"""

import re

IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "tooth": "teeth",
    "foot": "feet",
    "mouse": "mice",
    "goose": "geese",
}

CONTROLLER_SUFFIX = "Controller"

_IDENTIFIER = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_VOWEL_Y = re.compile(r"[aeiou]y$")


class InvalidNameError(ValueError):
    """Raised when a name cannot be turned into a resource identifier."""
    pass


def _require_name(word: str) -> None:
    if not word or not word.strip():
        raise InvalidNameError("Name must be a non-empty string")


def capitalize(word: str) -> str:
    """Upper-case the first character and keep the rest as given."""
    return word[:1].upper() + word[1:]


def pluralize(word: str) -> str:
    """
    Pluralize an English word.

    Irregular plurals keep the casing of the first character; every other
    rule appends to the word as given, so ``City`` becomes ``Cities``.

    Args:
        word: Singular word, any casing

    Returns:
        Plural form of the word

    Raises:
        InvalidNameError: If the word is empty or whitespace

    Example:
        >>> pluralize("Person")
        'People'
        >>> pluralize("box")
        'boxes'
    """
    _require_name(word)
    lower = word.lower()

    irregular = IRREGULAR_PLURALS.get(lower)
    if irregular:
        return capitalize(irregular) if word[0].isupper() else irregular

    # Already plural or uncountable
    if lower.endswith(("s", "x", "z")):
        if lower.endswith(("ss", "us", "is", "x", "z")):
            return word + "es"
        return word

    if lower.endswith("y") and not _VOWEL_Y.search(lower):
        return word[:-1] + "ies"

    if lower.endswith(("ch", "sh")):
        return word + "es"

    if lower.endswith("f"):
        return word[:-1] + "ves"
    if lower.endswith("fe"):
        return word[:-2] + "ves"

    return word + "s"


def controller_name_to_resource(controller_name: str) -> str:
    """
    Convert a controller name to its resource path segment.

    ``UserController`` becomes ``users``. This uses the simple "append s"
    rule rather than :func:`pluralize`, so ``PersonController`` maps to
    ``persons``. Pass an explicit resource to the registry when the
    grammatical plural is wanted.

    Raises:
        InvalidNameError: If nothing is left once the suffix is removed
    """
    base_name = controller_name
    if base_name.endswith(CONTROLLER_SUFFIX):
        base_name = base_name[: -len(CONTROLLER_SUFFIX)]
    _require_name(base_name)

    lower = base_name.lower()
    return lower if lower.endswith("s") else lower + "s"


def snake_case(word: str) -> str:
    """Convert ``BlogPost`` or ``blog-post`` to ``blog_post``."""
    word = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", word)
    return re.sub(r"[\s-]+", "_", word).lower()


def validate_name(name: str) -> str:
    """
    Check that a name can be used as a model or controller identifier.

    Returns:
        The name, unchanged

    Raises:
        InvalidNameError: If the name is not a plain identifier
    """
    if not _IDENTIFIER.match(name or ""):
        raise InvalidNameError(
            f"Invalid name '{name}': use letters, digits and underscores, "
            "starting with a letter"
        )
    return name
