"""128-bit identifiers used for project and project type identity."""

from __future__ import annotations

import uuid

from clide.errors import InvalidIdentifier

# Project type of a standard C# project
STANDARD_PROJECT_TYPE = uuid.UUID("FAE04EC0-301F-11D3-BF4B-00C04F79EFBC")


def new_id() -> uuid.UUID:
    """Return a freshly generated random identifier."""
    return uuid.uuid4()


def parse_id(text: str) -> uuid.UUID:
    """Parse an identifier in either braced or bare form, any case."""
    if not isinstance(text, str):
        raise InvalidIdentifier(text)
    try:
        return uuid.UUID(text.strip().strip("{}"))
    except ValueError as e:
        raise InvalidIdentifier(text) from e


def braced(value: uuid.UUID) -> str:
    """Format an identifier the way .sln and .csproj files embed it."""
    return "{" + str(value).upper() + "}"
