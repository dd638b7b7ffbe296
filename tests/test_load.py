import pytest

from lispy import ScriptRunner
from lispy.lispy_datatypes import Number, SExpr, ParseFailure
from lispy.lispy_file import find_source, read_source


@pytest.fixture
def runner():
    return ScriptRunner(load_core=False)


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def messages(result, topic):
    return [e['message'] for e in result.side_effects if e['topics'] == [topic]]


# --- load builtin ---

def test_load_defines_into_caller_environment(runner, tmp_path):
    lib = write(tmp_path / "lib.lspy", "(def {x} 41)\n(def {inc} (\\ {n} {+ n 1}))\n")
    res = runner.handle_script(f'load "{lib}"')
    assert res.value == SExpr()
    assert runner.handle_script("inc x").value == Number(42)


def test_load_continues_past_errors(runner, tmp_path):
    lib = write(tmp_path / "errs.lspy", '(def {a} 1)\n(error "oops")\n(def {b} 2)\n')
    res = runner.handle_script(f'load "{lib}"')
    assert res.status == 'success'
    assert messages(res, 'stderr') == ["Error: oops"]
    assert runner.handle_script("+ a b").value == Number(3)


def test_load_forwards_print_output(runner, tmp_path):
    lib = write(tmp_path / "hello.lspy", '(print "hello")\n')
    res = runner.handle_script(f'load "{lib}"')
    assert messages(res, 'stdout') == ['"hello"']


def test_load_missing_file(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    res = runner.handle_script('load "nope.lspy"')
    assert runner.printer.pformat(res.value) == (
        "Error: Could not load library nope.lspy: unable to open file"
    )


def test_load_parse_error(runner, tmp_path):
    lib = write(tmp_path / "broken.lspy", "(def {x} 1\n")
    res = runner.handle_script(f'load "{lib}"')
    assert res.status == 'error'
    assert res.value.message.startswith("Could not load library ")
    assert "x" not in runner.root_env


def test_load_argument_type(runner):
    res = runner.handle_script("load 1")
    assert runner.printer.pformat(res.value) == (
        "Error: Function 'load' passed incorrect type for argument 0. Got Number, Expected String."
    )


def test_nested_load_is_relative_to_loading_file(runner, tmp_path):
    write(tmp_path / "pkg" / "inner.lspy", "(def {inner} 7)\n")
    write(tmp_path / "pkg" / "outer.lspy", '(load "inner.lspy")\n(def {outer} (* inner 2))\n')
    res = runner.handle_script(f'load "{tmp_path / "pkg" / "outer.lspy"}"')
    assert messages(res, 'stderr') == []
    assert runner.handle_script("list inner outer").value == runner.parse("{7 14}")[0]
    # The base directory is restored once loading finishes
    assert runner.source_dir is None


def test_load_path_from_environment(runner, tmp_path, monkeypatch):
    write(tmp_path / "libs" / "shared.lspy", "(def {shared} 5)\n")
    monkeypatch.setenv("LISPY_PATH", str(tmp_path / "libs"))
    monkeypatch.chdir(tmp_path)
    runner.handle_script('load "shared.lspy"')
    assert runner.handle_script("shared").value == Number(5)


# --- load_file ---

def test_load_file_reports_each_error(runner, tmp_path):
    src = write(tmp_path / "main.lspy", "(/ 1 0)\n(head {})\n(def {ok} 1)\n")
    res = runner.load_file(str(src))
    assert res.status == 'success'
    assert messages(res, 'stderr') == [
        "Error: Division by zero",
        "Error: Function 'head' passed {} for argument 0.",
    ]
    assert runner.handle_script("ok").value == Number(1)


def test_load_file_missing(runner, tmp_path):
    res = runner.load_file(str(tmp_path / "missing.lspy"))
    assert res.status == 'error'
    assert "unable to open file" in res.format_error()


def test_load_file_accepts_file_locator(runner, tmp_path):
    src = write(tmp_path / "loc.lspy", "(def {here} 1)\n")
    res = runner.load_file(f"file://{src}")
    assert res.status == 'success'
    assert runner.handle_script("here").value == Number(1)


# --- Source lookup ---

def test_find_source_prefers_base_dir(tmp_path, monkeypatch):
    write(tmp_path / "a" / "x.lspy", "")
    write(tmp_path / "b" / "x.lspy", "")
    monkeypatch.setenv("LISPY_PATH", str(tmp_path / "b"))
    assert find_source("x.lspy", str(tmp_path / "a")) == str(tmp_path / "a" / "x.lspy")
    assert find_source("x.lspy", str(tmp_path / "c")) == str(tmp_path / "b" / "x.lspy")
    assert find_source("y.lspy", str(tmp_path / "a")) is None


def test_read_source_missing_raises(tmp_path):
    with pytest.raises(ParseFailure) as exc:
        read_source("gone.lspy", str(tmp_path))
    assert exc.value.message == "Could not load library gone.lspy: unable to open file"
