from __future__ import annotations
import os
from pathlib import Path
from typing import Iterable, List


def _sep() -> str:
    return ';' if os.name == 'nt' else ':'


# Resolve installation dir (lispy package directory)
_LISPY_DIR = Path(__file__).resolve().parent

# Defaults
DEFAULT_MAX_DEPTH = 2000
GRAMMAR_PATH = _LISPY_DIR / 'grammar' / 'lispy_grammar.yaml'
PRELUDE_PATH = _LISPY_DIR / 'root.lspy'


def paths_from_env(var: str, defaults: Iterable[Path]) -> List[Path]:
    raw = os.environ.get(var)
    if not raw:
        return [Path(p) for p in defaults]
    sep = _sep()
    return [Path(p.strip()) for p in raw.split(sep) if p.strip()]


def get_load_path() -> List[Path]:
    """Directories searched by `load` for relative source names."""
    return paths_from_env('LISPY_PATH', [])


def get_max_depth() -> int:
    raw = os.environ.get('LISPY_MAX_DEPTH')
    if not raw:
        return DEFAULT_MAX_DEPTH
    try:
        depth = int(raw)
    except ValueError:
        return DEFAULT_MAX_DEPTH
    return depth if depth > 0 else DEFAULT_MAX_DEPTH


def debug_enabled() -> bool:
    return bool(os.environ.get('LISPY_DEBUG'))
