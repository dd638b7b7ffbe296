from lispy.lispy_runtime import ScriptRunner, ExecutionResult, StdLib
from lispy.lispy_interpreter import Evaluator
from lispy.lispy_printer import Printer
from lispy.lispy_datatypes import Environment

__all__ = ["ScriptRunner", "ExecutionResult", "StdLib", "Evaluator", "Printer", "Environment"]
