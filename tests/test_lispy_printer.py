import pytest

from lispy.lispy_printer import Printer, escape
from lispy.lispy_datatypes import (
    Number, Error, Symbol, String, SExpr, QExpr, Builtin, Closure
)


def _noop(env, args):
    return SExpr()


@pytest.fixture
def printer():
    return Printer()


# Test cases: (id, object, expected_string)
FORMAT_TEST_CASES = [
    ("number", Number(42), "42"),
    ("negative_number", Number(-7), "-7"),
    ("symbol", Symbol("add1"), "add1"),
    ("string", String("hello"), '"hello"'),
    ("string_escapes", String('a\nb\t"c"\\'), r'"a\nb\t\"c\"\\"'),
    ("error", Error("Division by zero"), "Error: Division by zero"),
    ("empty_sexpr", SExpr(), "()"),
    ("empty_qexpr", QExpr(), "{}"),
    ("sexpr", SExpr([Symbol("+"), Number(1), Number(2)]), "(+ 1 2)"),
    ("nested_qexpr", QExpr([Number(1), QExpr([Number(2), Number(3)])]), "{1 {2 3}}"),
    ("builtin", Builtin("+", _noop), "<builtin>"),
    (
        "closure",
        Closure(QExpr([Symbol("x")]), QExpr([Symbol("+"), Symbol("x"), Number(1)])),
        r"(\ {x} {+ x 1})",
    ),
    (
        "saturated_closure",
        Closure(QExpr(), QExpr([Symbol("x")])),
        r"(\ {} {x})",
    ),
]


@pytest.mark.parametrize(
    "test_id, obj, expected",
    FORMAT_TEST_CASES,
    ids=[t[0] for t in FORMAT_TEST_CASES]
)
def test_pformat(printer, test_id, obj, expected):
    assert printer.pformat(obj) == expected


def test_escape_leaves_plain_text_alone():
    assert escape("plain text") == "plain text"
    assert escape("tab\there") == "tab\\there"
