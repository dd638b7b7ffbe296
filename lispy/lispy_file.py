from __future__ import annotations
import os
from pathlib import Path
from typing import Optional, Tuple

from lispy.lispy_config import get_load_path
from lispy.lispy_datatypes import ParseFailure


def _resolve_locator(locator: str, base_dir: Optional[str]) -> str:
    # Accept both bare names and 'file://' locators
    rest = locator[7:] if locator.startswith("file://") else locator
    # Absolute filesystem path
    if rest.startswith("/"):
        return "/" + rest.lstrip("/")
    # Home directory
    if rest.startswith("~"):
        return os.path.expanduser(rest)
    # Default: relative to the loading source's dir (or CWD)
    base = base_dir or os.getcwd()
    return os.path.normpath(os.path.join(base, rest))


def find_source(locator: str, base_dir: Optional[str] = None) -> Optional[str]:
    """Returns the path of the named source unit, or None if it cannot be found.

    Relative names are tried against ``base_dir`` first, then against each
    directory on LISPY_PATH.
    """
    path = _resolve_locator(locator, base_dir)
    if os.path.isfile(path):
        return path
    rest = locator[7:] if locator.startswith("file://") else locator
    if os.path.isabs(rest) or rest.startswith("~"):
        return None
    for root in get_load_path():
        candidate = os.path.normpath(os.path.join(str(root), rest))
        if os.path.isfile(candidate):
            return candidate
    return None


def read_source(locator: str, base_dir: Optional[str] = None) -> Tuple[str, str]:
    """Reads a source unit, returning ``(path, text)``."""
    path = find_source(locator, base_dir)
    if path is None:
        raise ParseFailure(f"Could not load library {locator}: unable to open file")
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseFailure(f"Could not load library {locator}: {e}") from e
    return path, text
