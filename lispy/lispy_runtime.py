"""
The Lispy runtime: the builtin standard library, and the ScriptRunner that
parses, transforms and evaluates source text into an ExecutionResult.
"""

import os
import sys
import inspect
from dataclasses import dataclass, field
from typing import Any, List, Optional, Literal, Dict

import yaml
from koine import Parser

from lispy.lispy_config import GRAMMAR_PATH, PRELUDE_PATH
from lispy.lispy_transformer import LispyTransformer
from lispy.lispy_interpreter import Evaluator
from lispy.lispy_printer import Printer
from lispy.lispy_file import read_source
from lispy.lispy_datatypes import (
    Value, Number, Error, Symbol, String, SExpr, QExpr, Builtin, Closure,
    Environment, TypeMismatch, ArityMismatch, DivisionByZero, IntegerOverflow,
    UserError, ParseFailure, NUMBER_MIN, NUMBER_MAX, type_name
)


def lispy_builtin(name: str):
    """A decorator that marks a StdLib method as the primitive bound to `name`."""
    def decorate(func):
        func._lispy_name = name
        return func
    return decorate


# ===================================================================
# Argument checks shared by the primitives
# ===================================================================

def _check_count(func: str, args: SExpr, num: int):
    if len(args) != num:
        raise ArityMismatch(
            f"Function '{func}' passed incorrect number of arguments. "
            f"Got {len(args)}, Expected {num}."
        )


def _check_min_count(func: str, args: SExpr, num: int):
    if len(args) < num:
        raise ArityMismatch(
            f"Function '{func}' passed too few arguments. "
            f"Got {len(args)}, Expected at least {num}."
        )


def _check_type(func: str, args: SExpr, index: int, expect: type):
    got = args[index]
    if not isinstance(got, expect):
        raise TypeMismatch(
            f"Function '{func}' passed incorrect type for argument {index}. "
            f"Got {type_name(got)}, Expected {expect.type_name}."
        )


def _check_not_empty(func: str, args: SExpr, index: int):
    if len(args[index]) == 0:
        raise ArityMismatch(f"Function '{func}' passed {{}} for argument {index}.")


def _check_symbols(func: str, syms: QExpr):
    for s in syms:
        if not isinstance(s, Symbol):
            raise TypeMismatch(
                f"Function '{func}' can't define non-symbol. "
                f"Got {type_name(s)}, Expected Symbol."
            )


def _checked(num: int) -> int:
    if num < NUMBER_MIN or num > NUMBER_MAX:
        raise IntegerOverflow()
    return num


def _trunc_div(a: int, b: int) -> int:
    # Integer division rounding toward zero
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


# ===================================================================
# The Standard Library
# ===================================================================
class StdLib:
    """Contains Python implementations for all Lispy built-ins.

    Every primitive takes ``(env, args)`` where ``args`` is the S-expression of
    already evaluated arguments, and returns one Value. Argument problems are
    raised as LispyError subclasses and become Error values at the call site.
    """
    def __init__(self, evaluator: Evaluator, runner: Optional['ScriptRunner'] = None):
        self.evaluator = evaluator
        self.runner = runner
        self.printer = Printer()

    def builtins(self) -> Dict[str, Builtin]:
        out = {}
        for _, member in inspect.getmembers(self):
            name = getattr(member, "_lispy_name", None)
            if name is not None and callable(member):
                out[name] = Builtin(name, member)
        return out

    # --- Math ---
    def _op(self, args: SExpr, op: str) -> Value:
        for cell in args:
            if not isinstance(cell, Number):
                raise TypeMismatch("Can't operate on non-number!")
        _check_min_count(op, args, 1)

        x = args.pop(0).num
        if op == "-" and len(args) == 0:
            x = -x

        while len(args):
            y = args.pop(0).num
            match op:
                case "+":
                    x = x + y
                case "-":
                    x = x - y
                case "*":
                    x = x * y
                case "/":
                    if y == 0:
                        raise DivisionByZero()
                    x = _trunc_div(x, y)
            _checked(x)

        return Number(_checked(x))

    @lispy_builtin("+")
    def _add(self, env, args): return self._op(args, "+")
    @lispy_builtin("-")
    def _sub(self, env, args): return self._op(args, "-")
    @lispy_builtin("*")
    def _mul(self, env, args): return self._op(args, "*")
    @lispy_builtin("/")
    def _div(self, env, args): return self._op(args, "/")

    # --- Comparison ---
    def _ord(self, args: SExpr, op: str) -> Value:
        _check_count(op, args, 2)
        _check_type(op, args, 0, Number)
        _check_type(op, args, 1, Number)
        a, b = args[0].num, args[1].num
        match op:
            case ">":
                r = a > b
            case "<":
                r = a < b
            case ">=":
                r = a >= b
            case _:
                r = a <= b
        return Number(int(r))

    @lispy_builtin(">")
    def _gt(self, env, args): return self._ord(args, ">")
    @lispy_builtin("<")
    def _lt(self, env, args): return self._ord(args, "<")
    @lispy_builtin(">=")
    def _gte(self, env, args): return self._ord(args, ">=")
    @lispy_builtin("<=")
    def _lte(self, env, args): return self._ord(args, "<=")

    @lispy_builtin("==")
    def _eq(self, env, args):
        _check_count("==", args, 2)
        return Number(int(args[0] == args[1]))

    @lispy_builtin("!=")
    def _neq(self, env, args):
        _check_count("!=", args, 2)
        return Number(int(args[0] != args[1]))

    # --- Conditionals ---
    @lispy_builtin("if")
    def _if(self, env, args):
        _check_count("if", args, 3)
        _check_type("if", args, 0, Number)
        _check_type("if", args, 1, QExpr)
        _check_type("if", args, 2, QExpr)
        # Only the selected branch is evaluated.
        branch = args[1] if args[0].num else args[2]
        return self.evaluator.evaluate(env, branch.as_sexpr())

    # --- Lists ---
    @lispy_builtin("list")
    def _list(self, env, args):
        return args.as_qexpr()

    @lispy_builtin("head")
    def _head(self, env, args):
        _check_count("head", args, 1)
        _check_type("head", args, 0, QExpr)
        _check_not_empty("head", args, 0)
        v = args.pop(0)
        del v.cells[1:]
        return v

    @lispy_builtin("tail")
    def _tail(self, env, args):
        _check_count("tail", args, 1)
        _check_type("tail", args, 0, QExpr)
        _check_not_empty("tail", args, 0)
        v = args.pop(0)
        v.pop(0)
        return v

    @lispy_builtin("join")
    def _join(self, env, args):
        _check_min_count("join", args, 1)
        for i in range(len(args)):
            _check_type("join", args, i, QExpr)
        x = args.pop(0)
        while len(args):
            x.cells.extend(args.pop(0).cells)
        return x

    @lispy_builtin("eval")
    def _eval(self, env, args):
        _check_count("eval", args, 1)
        _check_type("eval", args, 0, QExpr)
        return self.evaluator.evaluate(env, args.pop(0).as_sexpr())

    # --- Definitions ---
    def _var(self, env: Environment, args: SExpr, func: str) -> Value:
        _check_min_count(func, args, 1)
        _check_type(func, args, 0, QExpr)
        syms = args[0]
        _check_symbols(func, syms)
        if len(syms) != len(args) - 1:
            raise ArityMismatch(
                f"Function '{func}' passed incorrect number of values for symbols. "
                f"Got {len(args) - 1}, Expected {len(syms)}."
            )
        for sym, val in zip(syms, args.cells[1:]):
            if func == "def":
                env.define_global(sym, val)
            else:
                env.bind(sym, val)
            self.evaluator._dbg("Define", func, sym.name, type_name(val))
        return SExpr()

    @lispy_builtin("def")
    def _def(self, env, args): return self._var(env, args, "def")

    @lispy_builtin("=")
    def _put(self, env, args): return self._var(env, args, "=")

    @lispy_builtin("\\")
    def _lambda(self, env, args):
        _check_count("\\", args, 2)
        _check_type("\\", args, 0, QExpr)
        _check_type("\\", args, 1, QExpr)
        _check_symbols("\\", args[0])
        formals = args.pop(0)
        body = args.pop(0)
        return Closure(formals, body, Environment())

    # --- Strings, errors and I/O ---
    @lispy_builtin("error")
    def _error(self, env, args):
        _check_count("error", args, 1)
        _check_type("error", args, 0, String)
        raise UserError(args[0].text)

    @lispy_builtin("print")
    def _print(self, env, args):
        self.evaluator.emit('stdout', " ".join(self.printer.pformat(a) for a in args))
        return SExpr()

    @lispy_builtin("load")
    def _load(self, env, args):
        _check_count("load", args, 1)
        _check_type("load", args, 0, String)
        if self.runner is None:
            raise ParseFailure("Could not load library: no runner available")
        name = args[0].text
        path, source = read_source(name, self.runner.source_dir)
        try:
            return self.runner.load_source(source, env, source_dir=os.path.dirname(path))
        except ParseFailure as e:
            raise ParseFailure(f"Could not load library {e.message}", e.line, e.col) from e


# ===================================================================
# Script execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_line: Optional[int] = None
    error_col: Optional[int] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_line is not None and not msg.startswith("Error on line "):
            col_info = f", col {self.error_col}" if self.error_col is not None else ""
            return f"Error on line {self.error_line}{col_info}: {msg}"
        return msg


class ScriptRunner:
    """Parses, transforms, and executes Lispy code."""

    _parser: Optional[Parser] = None
    _transformer: Optional[LispyTransformer] = None
    _core_loaded_ast: Optional[SExpr] = None

    def __init__(self, load_core: bool = True, max_depth: Optional[int] = None):
        self._initialized = False
        self._load_core = load_core
        self.root_env = Environment()
        self.source_dir = None  # directory of the current source file, if known

        if ScriptRunner._parser is None:
            with GRAMMAR_PATH.open(encoding="utf-8") as f:
                grammar = yaml.safe_load(f)
            ScriptRunner._parser = Parser(grammar)

        if ScriptRunner._transformer is None:
            ScriptRunner._transformer = LispyTransformer()

        self.parser = ScriptRunner._parser
        self.transformer = ScriptRunner._transformer
        self.printer = Printer()

        self.evaluator = Evaluator(max_depth)
        # Leave headroom so the evaluator's own depth limit trips first.
        needed = self.evaluator.max_depth * 12 + 1000
        if sys.getrecursionlimit() < needed:
            sys.setrecursionlimit(needed)

        # Load stdlib
        self.stdlib = StdLib(self.evaluator, self)
        for name, builtin in self.stdlib.builtins().items():
            self.root_env.bind(name, builtin)

    def _initialize(self):
        """Loads root.lspy into the root environment if not already loaded."""
        if self._initialized or not self._load_core:
            self._initialized = True
            return

        # AST is parsed once and cached on the class
        if ScriptRunner._core_loaded_ast is None:
            try:
                source = PRELUDE_PATH.read_text(encoding="utf-8")
                ScriptRunner._core_loaded_ast = self.parse(source)
            except ParseFailure as e:
                raise RuntimeError(f"Failed to parse root.lspy:\n{self._format_parse_error(e)}") from e

        # Evaluation happens for each instance; evaluation consumes its input.
        self._initialized = True
        self._evaluate_each(ScriptRunner._core_loaded_ast.copy(), self.root_env)

    def _format_parse_error(self, e: ParseFailure) -> str:
        if e.line is not None and e.col is not None:
            return f"ParseError: {e.message} (line {e.line}, col {e.col})"
        return f"ParseError: {e.message}"

    def parse(self, source_code: str) -> SExpr:
        """Parses source text into the root S-expression of its top-level expressions."""
        try:
            parse_out = self.parser.parse(source_code)
        except Exception as e:
            raise ParseFailure(f"parse failed: {e}") from e

        if isinstance(parse_out, dict) and 'status' in parse_out:
            if parse_out.get('status') != 'success':
                node = parse_out.get('error_node') or {}
                base = parse_out.get('error_message') or str(parse_out)
                raise ParseFailure(base, node.get('line'), node.get('col'))
            ast_node = parse_out.get('ast')
        else:
            ast_node = parse_out

        root = self.transformer.transform(ast_node)
        if not isinstance(root, SExpr):
            root = SExpr([root])
        return root

    def _evaluate_each(self, root: SExpr, env: Environment):
        while len(root):
            x = self.evaluator.evaluate(env, root.pop(0))
            if isinstance(x, Error):
                self.evaluator.emit('stderr', self.printer.pformat(x))

    def load_source(self, source_code: str, env: Optional[Environment] = None,
                    source_dir: Optional[str] = None) -> Value:
        """Evaluates every top-level expression of a source unit in order.

        Error results are reported as stderr side effects and evaluation moves
        on to the next expression. Raises ParseFailure if the unit does not parse.
        """
        root = self.parse(source_code)
        prev_dir = self.source_dir
        if source_dir is not None:
            self.source_dir = source_dir
        try:
            self._evaluate_each(root, env if env is not None else self.root_env)
        finally:
            self.source_dir = prev_dir
        return SExpr()

    def _reset_run_state(self):
        self.evaluator.side_effects.clear()
        self.evaluator.depth = 0

    def _to_result(self, value: Value) -> ExecutionResult:
        if isinstance(value, Error):
            return ExecutionResult(
                status='error',
                value=value,
                error_message=self.printer.pformat(value),
                side_effects=list(self.evaluator.side_effects)
            )
        return ExecutionResult(
            status='success',
            value=value,
            side_effects=list(self.evaluator.side_effects)
        )

    def _parse_error_result(self, e: ParseFailure) -> ExecutionResult:
        msg = self._format_parse_error(e)
        return ExecutionResult(
            status='error',
            value=e.to_value(),
            error_message=msg,
            error_line=e.line,
            error_col=e.col,
            side_effects=list(self.evaluator.side_effects)
        )

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point for REPL input.

        The whole input is read as one S-expression, so `def {x} 1` and
        `(def {x} 1)` mean the same thing.
        """
        self._reset_run_state()
        self._initialize()
        try:
            root = self.parse(source_code)
        except ParseFailure as e:
            return self._parse_error_result(e)
        result = self.evaluator.evaluate(self.root_env, root)
        return self._to_result(result)

    def load_file(self, locator: str) -> ExecutionResult:
        """Loads a source file, evaluating each top-level expression."""
        self._reset_run_state()
        self._initialize()
        try:
            path, source = read_source(locator, self.source_dir)
            result = self.load_source(source, self.root_env, source_dir=os.path.dirname(path))
        except ParseFailure as e:
            return self._parse_error_result(e)
        return self._to_result(result)
