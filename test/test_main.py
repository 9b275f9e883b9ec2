"""
Command line and REPL tests
"""

import sys
import pytest

import main
from main import (
  create_arg_parser,
  evaluate_repl_input,
  is_incomplete,
  parse_file,
  run_interactive_mode,
  run_script_file,
  tokens_file
)
from parsing import create_parser
from semantics import create_analyzer
from interpreter import create_interpreter, DEFAULT_MAX_DEPTH
from error_handling import KiteParseError


@pytest.fixture
def script(tmp_path):
  """Write a Kite script and return its path"""
  def write(source, name="script.kite"):
    path = tmp_path / name
    path.write_text(source, encoding='utf-8')
    return str(path)
  return write


def feed_input(monkeypatch, lines):
  """Replace input() with a scripted session that ends in EOF"""
  remaining = iter(lines)

  def fake_input(prompt=""):
    try:
      return next(remaining)
    except StopIteration:
      raise EOFError

  monkeypatch.setattr("builtins.input", fake_input)
  monkeypatch.setattr(main, "READLINE_AVAILABLE", False)


class TestArguments:

  def test_defaults(self):
    args = create_arg_parser().parse_args(["prog.kite"])
    assert args.script == "prog.kite"
    assert args.max_depth == DEFAULT_MAX_DEPTH
    assert not args.debug and not args.tokens and not args.parse

  def test_flags(self):
    args = create_arg_parser().parse_args(["--debug", "--max-depth", "10", "-i"])
    assert args.debug
    assert args.max_depth == 10
    assert args.interactive

  def test_invalid_max_depth(self, monkeypatch, script):
    monkeypatch.setattr(sys, "argv", ["kite", "--max-depth", "0", script("1;")])
    with pytest.raises(SystemExit) as exc_info:
      main.main()
    assert exc_info.value.code == 2


class TestScriptRunner:

  def test_runs_script(self, capsys, script):
    run_script_file(script('let x = 1 + 2;\nprint("x is", x);'))
    assert capsys.readouterr().out == "x is 3\n"

  def test_main_runs_script(self, capsys, monkeypatch, script):
    monkeypatch.setattr(sys, "argv", ["kite", script("print(6 * 7);")])
    main.main()
    assert capsys.readouterr().out == "42\n"

  def test_runtime_error_exits(self, capsys, script):
    with pytest.raises(SystemExit) as exc_info:
      run_script_file(script("print(1);\nprint(missing);"))
    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert "Error (UndefinedVariable): Undefined variable 'missing'" in out
    assert "print(missing);" in out

  def test_parse_error_exits(self, capsys, script):
    with pytest.raises(SystemExit) as exc_info:
      run_script_file(script("let = 1;"))
    assert exc_info.value.code == 1
    assert "Parse error at line 1, column 5" in capsys.readouterr().out

  def test_max_depth_is_applied(self, capsys, script):
    path = script("fn d(n) { if (n == 0) { return 0; } return d(n - 1); } d(20);")
    with pytest.raises(SystemExit):
      run_script_file(path, max_depth=10)
    assert "StackOverflow" in capsys.readouterr().out

  def test_missing_file(self, capsys, tmp_path):
    with pytest.raises(SystemExit) as exc_info:
      run_script_file(str(tmp_path / "absent.kite"))
    assert exc_info.value.code == 1
    assert "not found" in capsys.readouterr().out


class TestDumps:

  def test_tokens_dump(self, capsys, script):
    tokens_file(script("let x = 1;"))
    out = capsys.readouterr().out
    assert "KEYWORD" in out
    assert "'let'" in out
    assert "EOF" in out

  def test_parse_dump(self, capsys, script):
    parse_file(script("let x = 1;\nprint(x);"))
    out = capsys.readouterr().out
    assert "Parsed 2 top-level statements:" in out
    assert "LET({'name': 'x'})" in out
    assert "CALL" in out

  def test_parse_dump_reports_semantic_errors(self, capsys, script):
    with pytest.raises(SystemExit):
      parse_file(script("break;"))
    assert "Semantic error" in capsys.readouterr().out


class TestRepl:

  @pytest.fixture
  def session(self):
    return create_parser(), create_analyzer(), create_interpreter()

  def test_echoes_results(self, capsys, session):
    evaluate_repl_input("let x = 2; fn f() { return x; } x * 21; print(1);", *session)
    assert capsys.readouterr().out.splitlines() == [
        "Bound: x = 2",
        "Defined function: f",
        "=> 42",
        "1",
    ]

  def test_strings_are_quoted(self, capsys, session):
    evaluate_repl_input('"a" + "b"', *session)
    assert capsys.readouterr().out == '=> "ab"\n'

  def test_error_keeps_session(self, capsys, session):
    evaluate_repl_input("let a = 1;", *session)
    evaluate_repl_input("a = nope;", *session)
    evaluate_repl_input("a", *session)
    out = capsys.readouterr().out
    assert "Runtime Error (UndefinedVariable)" in out
    assert out.rstrip().endswith("=> 1")

  def test_error_in_earlier_function_shows_its_source(self, capsys, session):
    evaluate_repl_input("fn f(x) {\n  return x / 0;\n}", *session, filename="<repl:1>")
    evaluate_repl_input("f(1);", *session, filename="<repl:2>")
    out = capsys.readouterr().out
    assert "Location: <repl:1>:2:10-15" in out
    assert "Source:   return x / 0;" in out

  def test_inputs_are_numbered(self, capsys, monkeypatch):
    feed_input(monkeypatch, ["fn f(x) { return x / 0; }", "f(1)"])
    run_interactive_mode()
    assert "Location: <repl:1>:1:18-23" in capsys.readouterr().out

  def test_incomplete_input(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("fn f() {")
    assert is_incomplete(exc_info.value)

    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("let = 1;")
    assert not is_incomplete(exc_info.value)

  def test_interactive_session(self, capsys, monkeypatch):
    feed_input(monkeypatch, ["let x = 2;", "x * 21", ":env", "exit"])
    run_interactive_mode()
    out = capsys.readouterr().out
    assert "Bound: x = 2" in out
    assert "=> 42" in out
    assert "  x = 2" in out

  def test_multiline_input(self, capsys, monkeypatch):
    feed_input(monkeypatch, ["fn f() {", "  return 1;", "}", "f()"])
    run_interactive_mode()
    out = capsys.readouterr().out
    assert "Defined function: f" in out
    assert "=> 1" in out
    assert out.rstrip().endswith("Goodbye!")

  def test_repl_commands(self, capsys, monkeypatch):
    feed_input(monkeypatch, [":tokens let y", ":parse 1 + 2", ":help", "exit"])
    run_interactive_mode()
    out = capsys.readouterr().out
    assert "KEYWORD('let')" in out
    assert "BINARY({'op': '+'})" in out
    assert "REPL Commands:" in out
