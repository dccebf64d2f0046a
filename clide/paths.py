"""Path separator normalisation for the Windows-style paths stored in project files."""

from __future__ import annotations

import os


def normalize(path: str) -> str:
    """Replace every forward slash with a backslash."""
    return path.replace("/", "\\")


def to_native(path: str) -> str:
    """Turn a stored backslash path into one usable on this filesystem."""
    return path.replace("\\", os.sep).replace("/", os.sep)


def relative_from(base_dir: str, target: str) -> str:
    """Express ``target`` relative to ``base_dir``.

    Walks up through ``..`` segments when the target lives in a parent or
    sibling tree. The result uses backslashes and never starts with a
    separator.
    """
    base = os.path.abspath(to_native(base_dir))
    full = os.path.abspath(to_native(target))
    rel = os.path.relpath(full, base)
    return normalize(rel).lstrip("\\")
