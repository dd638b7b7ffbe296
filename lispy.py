import sys

from lispy.lispy_runtime import ScriptRunner
from lispy.lispy_datatypes import RecursionDepthExceeded

try:
    import readline  # noqa: F401  (line editing for input())
except ImportError:
    pass


def read_line(prompt: str) -> str:
    return input(prompt)


def print_side_effects(result):
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            print(effect.get('message', ''))
        elif effect.get('topics') == ['stderr']:
            print(effect.get('message', ''), file=sys.stderr)


def run_files(paths) -> int:
    """Load each file in order, reporting errors and moving on to the next file."""
    runner = ScriptRunner()
    status = 0
    for path in paths:
        result = runner.load_file(path)
        print_side_effects(result)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            status = 1
    return status


def repl():
    print("Lispy version 0.0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner()

    # REPL Loop
    while True:
        try:
            line = read_line("lispy> ").strip()
        except EOFError:
            print("\nExiting.")
            break

        if not line:
            continue
        if line == "exit":
            break

        try:
            result = runner.handle_script(line)
        except RecursionDepthExceeded:
            raise
        except Exception as e:
            # Interpreter faults are reported and the session continues
            print(f"Error: {e}", file=sys.stderr)
            continue

        print_side_effects(result)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            continue
        print(runner.printer.pformat(result.value))


def main(argv=None):
    """Load the given files when provided, otherwise start the interactive REPL."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        if args:
            return run_files(args)
        repl()
        return 0
    except RecursionDepthExceeded as e:
        print(f"Fatal: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except KeyboardInterrupt:
        print("\nExiting.")
