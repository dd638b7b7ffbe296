"""
Defines the core data types for the Lispy language runtime.

This module provides the value model (numbers, errors, symbols, strings,
S-expressions, Q-expressions and functions), the environment chain used for
symbol resolution, and the exception hierarchy used by builtins to signal
errors before they are turned into first-class Error values.
"""

from abc import ABC
import copy as _copy
from typing import List, Dict, Any, Optional, Callable, Iterator
import collections.abc

# =================================================================
# Error taxonomy
# =================================================================

class LispyError(Exception):
    """Base class for errors that surface in Lispy as Error values."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_value(self) -> 'Error':
        return Error(self.message)


class UnboundSymbol(LispyError):
    def __init__(self, name: str):
        super().__init__(f"Unbound symbol '{name}'")
        self.name = name


class TypeMismatch(LispyError):
    pass


class ArityMismatch(LispyError):
    pass


class TooManyArguments(LispyError):
    def __init__(self, given: int, total: int):
        super().__init__(f"Function passed too many arguments: got {given}, expected {total}.")
        self.given = given
        self.total = total


class MalformedVariadic(LispyError):
    def __init__(self):
        super().__init__("Function format invalid. Symbol '&' not followed by single symbol.")


class DivisionByZero(LispyError):
    def __init__(self):
        super().__init__("Division by zero")


class IntegerOverflow(LispyError):
    def __init__(self):
        super().__init__("Integer overflow")


class InvalidLiteral(LispyError):
    def __init__(self, text: str = ""):
        super().__init__("Invalid number")
        self.text = text


class UserError(LispyError):
    pass


class ParseFailure(LispyError):
    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.col = col


class RecursionDepthExceeded(Exception):
    """Fatal: evaluation nested deeper than the configured limit."""
    def __init__(self, depth: int):
        super().__init__(f"Maximum evaluation depth exceeded ({depth})")
        self.depth = depth


# Signed 64-bit bounds for Number values.
NUMBER_MIN = -(2 ** 63)
NUMBER_MAX = 2 ** 63 - 1

# =================================================================
# Abstract Base Classes
# =================================================================

class Value(ABC):
    """Abstract base class for every Lispy runtime datum."""
    type_name = "Unknown"

    def copy(self) -> 'Value':
        return _copy.copy(self)


class LispyBlock(Value, collections.abc.MutableSequence):
    """
    Abstract base class for SExpr and QExpr, the two list-shaped values.
    Both hold an ordered list of child values that they own exclusively.
    """
    def __init__(self, cells: Optional[List[Value]] = None):
        self.cells: List[Value] = list(cells or [])

    def __getitem__(self, index):
        return self.cells[index]

    def __setitem__(self, index, value):
        self.cells[index] = value

    def __delitem__(self, index):
        del self.cells[index]

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[Value]:
        return iter(self.cells)

    def insert(self, index, value):
        self.cells.insert(index, value)

    def append(self, value: Value) -> 'LispyBlock':
        self.cells.append(value)
        return self

    def pop(self, index: int = -1) -> Value:
        return self.cells.pop(index)

    def copy(self) -> 'LispyBlock':
        return type(self)([c.copy() for c in self.cells])

    def as_qexpr(self) -> 'QExpr':
        return QExpr(self.cells)

    def as_sexpr(self) -> 'SExpr':
        return SExpr(self.cells)

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return self.cells == other.cells

    __hash__ = None


# =================================================================
# Core Runtime Types
# =================================================================

class Number(Value):
    type_name = "Number"

    def __init__(self, num: int):
        self.num = num

    def __eq__(self, other):
        return isinstance(other, Number) and self.num == other.num

    def __hash__(self):
        return hash(("num", self.num))

    def __repr__(self) -> str:
        return f"Number({self.num})"


class Error(Value):
    type_name = "Error"

    def __init__(self, message: str):
        self.message = message

    def __eq__(self, other):
        return isinstance(other, Error) and self.message == other.message

    def __hash__(self):
        return hash(("err", self.message))

    def __repr__(self) -> str:
        return f"Error({self.message!r})"


class Symbol(Value):
    type_name = "Symbol"

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, other):
        return isinstance(other, Symbol) and self.name == other.name

    def __hash__(self):
        return hash(("sym", self.name))

    def __repr__(self) -> str:
        return f"Symbol({self.name!r})"


class String(Value):
    """A string value, stored unescaped; the printer re-applies escapes."""
    type_name = "String"

    def __init__(self, text: str):
        self.text = text

    def __eq__(self, other):
        return isinstance(other, String) and self.text == other.text

    def __hash__(self):
        return hash(("str", self.text))

    def __repr__(self) -> str:
        return f"String({self.text!r})"


class SExpr(LispyBlock):
    """An S-expression: a list pending evaluation."""
    type_name = "S-Expression"

    def __repr__(self) -> str:
        return f"SExpr({self.cells!r})"


class QExpr(LispyBlock):
    """A Q-expression: a quoted list, left alone by the evaluator."""
    type_name = "Q-Expression"

    def __repr__(self) -> str:
        return f"QExpr({self.cells!r})"


class Function(Value):
    """Abstract base class for everything callable from Lispy."""
    type_name = "Function"


class Builtin(Function):
    """A primitive bound directly to its Python implementation.

    The callable receives ``(env, args)`` and returns a Value.
    """
    def __init__(self, name: str, func: Callable[['Environment', SExpr], Value]):
        self.name = name
        self.func = func

    def copy(self) -> 'Builtin':
        # Builtins are shared by identity.
        return self

    def __eq__(self, other):
        return isinstance(other, Builtin) and self.func == other.func

    def __hash__(self):
        return hash(("builtin", self.func))

    def __repr__(self) -> str:
        return f"<Builtin {self.name}>"


class Closure(Function):
    """A user-defined function built by the lambda primitive.

    Bundles the formal parameters still waiting for arguments, the quoted
    body, and the environment that accumulates bound parameters across
    partial applications.
    """
    def __init__(self, formals: QExpr, body: QExpr, env: Optional['Environment'] = None):
        self.formals = formals
        self.body = body
        self.env = env if env is not None else Environment()

    def copy(self) -> 'Closure':
        return Closure(self.formals.copy(), self.body.copy(), self.env.clone())

    @property
    def is_saturated(self) -> bool:
        return len(self.formals) == 0

    def __eq__(self, other):
        """Equal when formals and body match up to a consistent renaming of the formals.

        Captured environments are not compared.
        """
        if not isinstance(other, Closure):
            return False
        if len(self.formals) != len(other.formals):
            return False
        mine, theirs = _positional_names(self.formals), _positional_names(other.formals)
        if _rename_symbols(self.formals, mine) != _rename_symbols(other.formals, theirs):
            return False
        return _rename_symbols(self.body, mine) == _rename_symbols(other.body, theirs)

    __hash__ = None

    def __repr__(self) -> str:
        return f"Closure({self.formals!r}, {self.body!r})"


def _positional_names(formals: QExpr) -> Dict[str, str]:
    # '#' never appears in a parsed symbol, so these cannot clash with free symbols.
    renames: Dict[str, str] = {}
    for i, sym in enumerate(formals):
        if isinstance(sym, Symbol) and sym.name != "&":
            renames.setdefault(sym.name, f"#{i}")
    return renames


def _rename_symbols(value: Value, renames: Dict[str, str]) -> Value:
    if not renames:
        return value
    if isinstance(value, Symbol):
        return Symbol(renames.get(value.name, value.name))
    if isinstance(value, LispyBlock):
        return type(value)([_rename_symbols(c, renames) for c in value.cells])
    return value


def type_name(value: Value) -> str:
    return getattr(value, "type_name", "Unknown")


# =================================================================
# Environment
# =================================================================

class Environment:
    """A frame of symbol bindings with an optional enclosing frame.

    Lookup walks from this frame outward through ``parent`` and the first
    match wins. Values are copied on the way in and on the way out, so the
    environment is the sole owner of what it stores.
    """
    def __init__(self, parent: Optional['Environment'] = None):
        self.parent = parent
        self.bindings: Dict[str, Value] = {}

    @staticmethod
    def _key(symbol: Any) -> str:
        if isinstance(symbol, Symbol):
            return symbol.name
        if isinstance(symbol, str):
            return symbol
        raise TypeError(f"Environment key must be a Symbol or str, not {type(symbol)}")

    def find_owner(self, name: str) -> Optional['Environment']:
        env = self
        while env is not None:
            if name in env.bindings:
                return env
            env = env.parent
        return None

    def lookup(self, symbol: Any) -> Value:
        name = self._key(symbol)
        owner = self.find_owner(name)
        if owner is None:
            raise UnboundSymbol(name)
        return owner.bindings[name].copy()

    def bind(self, symbol: Any, value: Value):
        self.bindings[self._key(symbol)] = value.copy()

    def root(self) -> 'Environment':
        env = self
        while env.parent is not None:
            env = env.parent
        return env

    def define_global(self, symbol: Any, value: Value):
        self.root().bind(symbol, value)

    def clone(self) -> 'Environment':
        """Deep-copies this frame's bindings; the parent reference is shared."""
        env = Environment(self.parent)
        env.bindings = {k: v.copy() for k, v in self.bindings.items()}
        return env

    def __contains__(self, symbol: Any) -> bool:
        try:
            return self.find_owner(self._key(symbol)) is not None
        except TypeError:
            return False

    def keys(self) -> collections.abc.KeysView:
        """Returns a view of keys in the current frame only."""
        return self.bindings.keys()

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Environment bindings=[{keys}]{parent_id}>"
