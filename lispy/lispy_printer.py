"""
A printer for Lispy values.
"""
from lispy.lispy_datatypes import (
    Number, Error, Symbol, String, SExpr, QExpr, Builtin, Closure
)

_ESCAPES = {
    '\a': '\\a', '\b': '\\b', '\f': '\\f', '\n': '\\n', '\r': '\\r',
    '\t': '\\t', '\v': '\\v', '\0': '\\0',
    '\\': '\\\\', '"': '\\"',
}


def escape(text: str) -> str:
    return ''.join(_ESCAPES.get(ch, ch) for ch in text)


class Printer:
    """Formats Lispy values into the text the REPL shows."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format a value."""
        handler = self._handlers.get(type(obj))
        if handler is None:
            # Default to Python's repr for unknown types
            return repr(obj)
        return handler(obj)

    def _create_handlers(self):
        return {
            Number: self._pformat_number,
            Error: self._pformat_error,
            Symbol: self._pformat_symbol,
            String: self._pformat_string,
            SExpr: self._pformat_sexpr,
            QExpr: self._pformat_qexpr,
            Builtin: self._pformat_builtin,
            Closure: self._pformat_closure,
        }

    def _pformat_number(self, obj):
        return str(obj.num)

    def _pformat_error(self, obj):
        return f"Error: {obj.message}"

    def _pformat_symbol(self, obj):
        return obj.name

    def _pformat_string(self, obj):
        return f'"{escape(obj.text)}"'

    def _pformat_cells(self, obj, open_ch, close_ch):
        inner = " ".join(self.pformat(c) for c in obj.cells)
        return f"{open_ch}{inner}{close_ch}"

    def _pformat_sexpr(self, obj):
        return self._pformat_cells(obj, "(", ")")

    def _pformat_qexpr(self, obj):
        return self._pformat_cells(obj, "{", "}")

    def _pformat_builtin(self, obj):
        return "<builtin>"

    def _pformat_closure(self, obj):
        return f"(\\ {self.pformat(obj.formals)} {self.pformat(obj.body)})"
