"""
Transforms the raw parser AST into Lispy values using lispy_datatypes.
"""

from typing import Any, List

from lispy.lispy_datatypes import (
    Value, Number, Symbol, String, SExpr, QExpr,
    InvalidLiteral, NUMBER_MIN, NUMBER_MAX
)

_UNESCAPES = {
    'a': '\a', 'b': '\b', 'f': '\f', 'n': '\n', 'r': '\r',
    't': '\t', 'v': '\v', '0': '\0',
    '\\': '\\', '"': '"', "'": "'",
}


def unescape(text: str) -> str:
    """Decodes backslash escapes. Unknown escapes are kept verbatim."""
    out = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '\\' and i + 1 < n:
            nxt = text[i + 1]
            if nxt in _UNESCAPES:
                out.append(_UNESCAPES[nxt])
            else:
                out.append(ch + nxt)
            i += 2
            continue
        out.append(ch)
        i += 1
    return ''.join(out)


def read_number(text: Any) -> Value:
    try:
        num = int(str(text), 10)
    except (TypeError, ValueError):
        return InvalidLiteral(str(text)).to_value()
    if num < NUMBER_MIN or num > NUMBER_MAX:
        return InvalidLiteral(str(text)).to_value()
    return Number(num)


class LispyTransformer:
    def transform(self, node: object) -> Value:
        """Converts a parse tree into a single value; a bare node list becomes an S-expression."""
        result = self._transform(node)
        if isinstance(result, list):
            return SExpr(result)
        if result is None:
            return SExpr()
        return result

    def _transform_children(self, children: object) -> List[Value]:
        out: List[Value] = []
        items = children if isinstance(children, list) else [children]
        for child in items:
            value = self._transform(child)
            if value is None:
                continue
            if isinstance(value, list):
                out.extend(value)
            else:
                out.append(value)
        return out

    def _transform(self, node: object):
        # Lists: transform each item, flattening nested sequences
        if isinstance(node, list):
            return self._transform_children(node)

        # Anything that is not a node dict is punctuation or parser noise
        if not isinstance(node, dict):
            return None

        tag = node.get('tag')
        children = node.get('children', [])

        match tag:
            # Containers
            case 'root' | 'sexpr':
                return SExpr(self._transform_children(children))
            case 'qexpr':
                return QExpr(self._transform_children(children))

            # Atomics
            case 'number':
                return read_number(node.get('text'))
            case 'symbol':
                return Symbol(node['text'])
            case 'string':
                raw = node.get('text') or '""'
                return String(unescape(raw[1:-1]))

            case 'comment':
                return None

            case _:
                # Wrapper nodes (e.g. an un-promoted 'expr') pass their children through.
                if 'children' in node:
                    return self._transform_children(children)
                return None
