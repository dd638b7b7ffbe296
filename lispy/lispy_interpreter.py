"""
The Lispy evaluator: symbol resolution, S-expression reduction and the
call protocol for builtins and closures.
"""

import sys
from typing import Any, List, Optional

from lispy.lispy_config import get_max_depth, debug_enabled
from lispy.lispy_datatypes import (
    Value, Error, Symbol, SExpr, QExpr, Function, Builtin, Closure,
    Environment, LispyError, TooManyArguments, MalformedVariadic,
    RecursionDepthExceeded, type_name
)

VARIADIC_MARKER = "&"


class Evaluator:
    """The Lispy execution engine."""
    def __init__(self, max_depth: Optional[int] = None):
        self.side_effects: List[Any] = []
        self.max_depth = max_depth if max_depth is not None else get_max_depth()
        self.depth = 0

    def _dbg(self, *parts):
        if debug_enabled():
            try:
                print("[DBG]", *parts, file=sys.stderr)
            except Exception:
                pass

    def emit(self, topic: str, message: str):
        """Records output for the driver to print after evaluation."""
        self.side_effects.append({'topics': [topic], 'message': message})

    # ---------------------------------------------------------------
    # Evaluation
    # ---------------------------------------------------------------

    def evaluate(self, env: Environment, v: Value) -> Value:
        """Reduces ``v`` in ``env``. Consumes ``v``: S-expressions are reduced in place."""
        self.depth += 1
        try:
            if self.depth > self.max_depth:
                raise RecursionDepthExceeded(self.max_depth)
            match v:
                case Symbol():
                    try:
                        return env.lookup(v)
                    except LispyError as e:
                        return e.to_value()
                case SExpr():
                    return self.evaluate_sexpr(env, v)
                case _:
                    return v
        except RecursionError as e:
            raise RecursionDepthExceeded(self.depth) from e
        finally:
            self.depth -= 1

    def evaluate_sexpr(self, env: Environment, v: SExpr) -> Value:
        for i, cell in enumerate(v.cells):
            v.cells[i] = self.evaluate(env, cell)

        for cell in v.cells:
            if isinstance(cell, Error):
                return cell

        if len(v) == 0:
            return v
        if len(v) == 1:
            return self.evaluate(env, v.pop(0))

        f = v.pop(0)
        if not isinstance(f, Function):
            self._dbg("Bad head", type_name(f))
            return Error("S-Expression starts with incorrect type")

        return self.call(env, f, v)

    # ---------------------------------------------------------------
    # Call protocol
    # ---------------------------------------------------------------

    def call(self, env: Environment, f: Function, args: SExpr) -> Value:
        match f:
            case Builtin():
                self._dbg("Builtin call", f.name, "argc", len(args))
                try:
                    return f.func(env, args)
                except LispyError as e:
                    return e.to_value()

            case Closure():
                self._dbg("Closure call", repr(f), "argc", len(args))
                try:
                    bound = self.bind_arguments(env, f, args)
                except LispyError as e:
                    return e.to_value()
                if not bound.is_saturated:
                    # Partial application
                    return bound
                return self.apply_saturated(env, bound)

            case _:
                return Error("S-Expression starts with incorrect type")

    def bind_arguments(self, env: Environment, f: Closure, args: SExpr) -> Closure:
        """Binds ``args`` to the formals of a copy of ``f`` and returns the copy.

        The copy's formals hold whatever is still unbound; an empty formal list
        means the closure is ready to run.
        """
        bound = f.copy()
        formals = bound.formals
        given = len(args)
        total = len(formals)

        while len(args):
            if len(formals) == 0:
                raise TooManyArguments(given, total)

            sym = formals.pop(0)
            if isinstance(sym, Symbol) and sym.name == VARIADIC_MARKER:
                if len(formals) != 1:
                    raise MalformedVariadic()
                rest = formals.pop(0)
                bound.env.bind(rest, args.as_qexpr())
                self._dbg("Bind rest", repr(rest), "count", len(args))
                args.cells = []
                break

            val = args.pop(0)
            bound.env.bind(sym, val)
            self._dbg("Bind", repr(sym), type_name(val))

        # A trailing '&' with nothing left to capture binds an empty list.
        if len(formals) > 0 and isinstance(formals[0], Symbol) and formals[0].name == VARIADIC_MARKER:
            if len(formals) != 2:
                raise MalformedVariadic()
            formals.pop(0)
            rest = formals.pop(0)
            bound.env.bind(rest, QExpr())

        return bound

    def apply_saturated(self, env: Environment, bound: Closure) -> Value:
        """Evaluates the body of a fully bound closure.

        The closure's environment is parented to the caller's for the duration
        of the call, so free symbols resolve through the calling environment.
        """
        prev_parent = bound.env.parent
        bound.env.parent = env
        try:
            return self.evaluate(bound.env, bound.body.copy().as_sexpr())
        finally:
            bound.env.parent = prev_parent
