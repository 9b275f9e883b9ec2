"""
Kite Programming Language - Main Entry Point
A small dynamically-typed scripting language with closures
"""

import sys
import argparse
from pathlib import Path
from typing import Optional, Dict, List
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from parsing import create_parser, create_debug_parser, pretty_print_ast, KEYWORDS
from semantics import create_analyzer, create_debug_analyzer
from interpreter import create_interpreter, DEFAULT_MAX_DEPTH
from environment import user_bindings
from error_handling import (
  KiteError,
  KiteErrorHandler,
  KiteLexError,
  KiteParseError,
  KiteSemanticsError,
  KiteRuntimeError,
  UNTERMINATED_STRING
)
from stdlib import kite_repr, BUILTIN_NAMES


VERSION = "Kite v0.1.0 (Tree-walking Interpreter)"
PROMPT = "kite> "
CONTINUATION_PROMPT = "...   "


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='Kite Programming Language - dynamically typed, with closures',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.kite            # Run a Kite script
  %(prog)s -i                     # Interactive mode
  %(prog)s --tokens script.kite   # Show the token stream
  %(prog)s --parse script.kite    # Parse and show AST
  %(prog)s --debug script.kite    # Run with debug output
  %(prog)s --max-depth 1000 f.kite  # Allow deeper recursion
  timeout 5 %(prog)s script.kite  # Run with 5 second timeout (Unix/macOS)
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Kite script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Tokenize file and show tokens (for debugging)'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show AST (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--max-depth',
      type=int,
      default=DEFAULT_MAX_DEPTH,
      metavar='N',
      help=f'Maximum nested function calls before StackOverflow (default: {DEFAULT_MAX_DEPTH})'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def read_source(script_path: str) -> str:
  """Read a script, exiting with a hint when the file cannot be read"""
  try:
    return Path(script_path).read_text(encoding='utf-8')
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found")
    print(f"  Hint: Check the file path and make sure the file exists")
    sys.exit(1)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'")
    print(f"  Hint: Make sure you have read permissions for this file")
    sys.exit(1)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")
    sys.exit(1)


def tokens_file(script_path: str, debug: bool = False) -> None:
  """Tokenize a Kite script file and show the tokens"""
  source = read_source(script_path)
  parser = create_debug_parser() if debug else create_parser()
  try:
    for token in parser.tokenize(source, script_path):
      print(f"{token.span.start_line:4d}:{token.span.start_col:<4d} {token.kind:<12} {token.lexeme!r}")
  except KiteLexError as e:
    print(KiteErrorHandler(source, script_path).format(e))
    sys.exit(1)


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse a Kite script file and show the AST"""
  source = read_source(script_path)
  try:
    parser = create_debug_parser() if debug else create_parser()
    analyzer = create_debug_analyzer() if debug else create_analyzer()

    print(f"Parsing {script_path}...")
    program = analyzer.analyze(parser.parse_string(source, script_path))

    statements = program['value']['statements']
    print(f"\nParsed {len(statements)} top-level statements:")
    print("=" * 50)
    print(pretty_print_ast(program), end='')

  except (KiteLexError, KiteParseError, KiteSemanticsError) as e:
    print(KiteErrorHandler(source, script_path).format(e))
    sys.exit(1)


def print_runtime_error(e: KiteRuntimeError, script_path: str) -> None:
  print(f"\n{'='*70}")
  print(f"Runtime Error in '{script_path}'")
  print(f"{'='*70}")
  print(f"\nError ({e.kind}): {e.message}")

  # Show source location if available
  if e.span:
    print(f"\nLocation: {e.span}")

  # Show source line if available
  if e.source_line:
    print(f"\nSource:")
    print(f"  {e.source_line}")
    print(f"  {' ' * (e.column - 1)}{'~' * max(1, min(len(e.span.text), len(e.source_line) - e.column + 1))}")

  print(f"\n{'='*70}\n")


def run_script_file(script_path: str, debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
  """Run a Kite script file"""
  source = read_source(script_path)
  interpreter = create_interpreter(debug=debug, max_depth=max_depth)

  try:
    if debug:
      print(f"Running {script_path}...")
    result = interpreter.run(source, script_path)
    if debug:
      print(f"Program result: {kite_repr(result)}")

  except (KiteLexError, KiteParseError, KiteSemanticsError) as e:
    print(f"{e}")
    sys.exit(1)
  except KiteRuntimeError as e:
    print_runtime_error(e, script_path)
    sys.exit(1)
  except Exception as e:
    print(f"Unexpected error while executing '{script_path}': {e}")
    if debug:
      import traceback
      traceback.print_exc()
    sys.exit(1)


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  # Setup history file
  history_file = os.path.expanduser("~/.kite_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet, or permission denied

  readline.set_history_length(1000)

  # Keywords, built-ins and REPL commands
  completions = sorted(KEYWORDS) + list(BUILTIN_NAMES) + [
      ":tokens", ":parse", ":env", ":help", "exit"
  ]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  # Save history on exit
  import atexit
  atexit.register(readline.write_history_file, history_file)


def is_incomplete(error: KiteError) -> bool:
  """True when the input merely stopped early and more lines could complete it"""
  if isinstance(error, KiteLexError):
    return error.kind == UNTERMINATED_STRING
  return isinstance(error, KiteParseError) and error.found == "end of input"


def describe_statement_result(statement: Dict, value: Dict) -> Optional[str]:
  """REPL echo for one evaluated top-level statement"""
  node_type = statement['type']
  if node_type == "FUNCTION_DEF":
    return f"Defined function: {statement['value']['name']}"
  if node_type == "LET":
    return f"Bound: {statement['value']['name']} = {kite_repr(value)}"
  if node_type == "EXPRESSION_STMT":
    if value['type'] == "Nil" and statement['value']['type'] == "CALL":
      return None
    return f"=> {kite_repr(value)}"
  return None


def print_help() -> None:
  print("REPL Commands:")
  print("  :tokens <source>  - Show the token stream")
  print("  :parse <source>   - Show parsed AST")
  print("  :env              - Show current environment")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language features:")
  print("  let x = 5;                      - Declaration")
  print("  x = x + 1;                      - Assignment to an existing variable")
  print("  fn add(a, b) { return a + b; }  - Function definition")
  print("  if (x > 5) { ... } else { ... } - Conditional")
  print("  while (x > 0) { x = x - 1; }    - Loop")
  print("  for (let i = 0; i < 3; i = i + 1) { print(i); }")


def evaluate_repl_input(code: str, parser, analyzer, interpreter, debug: bool = False,
                        filename: str = "<repl>") -> None:
  """
  Evaluate one REPL input statement by statement in the session environment.
  A failing statement is reported and discarded; earlier statements of the
  same input keep their effects.
  """
  try:
    program = analyzer.analyze(parser.parse_string(code, filename))
  except (KiteLexError, KiteParseError, KiteSemanticsError) as e:
    print(KiteErrorHandler(code, filename).format(e))
    return

  # Functions defined here may fail in later inputs; keep their source around
  handler = interpreter.remember(code, filename)

  for statement in program['value']['statements']:
    try:
      value, signal = interpreter.evaluate(statement)
    except KiteRuntimeError as e:
      interpreter.enhance(e, handler)
      print(f"\nRuntime Error ({e.kind}):")
      print(f"  {e.message}")
      if e.span:
        print(f"  Location: {e.span}")
      if e.source_line:
        print(f"  Source: {e.source_line}")
      print()
      return

    if signal['kind'] == 'return':
      print(f"=> {kite_repr(signal['value'])}")
      return

    echo = describe_statement_result(statement, value)
    if echo:
      print(echo)


def run_interactive_mode(debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
  """Run Kite in interactive mode"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  # Setup readline
  setup_readline()

  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  interpreter = create_interpreter(debug=debug, max_depth=max_depth)
  input_count = 0

  while True:
    try:
      code = input(PROMPT)

      if code.strip() == "exit":
        break

      if not code.strip():
        continue

      # Special commands
      if code.startswith(":tokens "):
        source = code[8:]
        try:
          for token in parser.tokenize(source, "<repl>"):
            print(f"  {token}")
        except KiteLexError as e:
          print(KiteErrorHandler(source, "<repl>").format(e))
        continue

      if code.startswith(":parse "):
        source = code[7:]
        try:
          print(pretty_print_ast(parser.parse_string(source, "<repl>")), end='')
        except (KiteLexError, KiteParseError) as e:
          print(KiteErrorHandler(source, "<repl>").format(e))
        continue

      if code.strip() == ":env":
        print("Current environment:")
        bindings = user_bindings(interpreter.global_env)
        if bindings:
          for name, value in bindings.items():
            val_str = kite_repr(value)
            if len(val_str) > 60:
              val_str = val_str[:57] + "..."
            print(f"  {name} = {val_str}")
        else:
          print("  (no user-defined bindings)")
        continue

      if code.strip() == ":help":
        print_help()
        continue

      # Keep reading while the input is an unfinished statement
      lines: List[str] = [code]
      while True:
        source = "\n".join(lines)
        try:
          parser.parse_string(source, "<repl>")
          break
        except (KiteLexError, KiteParseError) as e:
          if not is_incomplete(e):
            break
        lines.append(input(CONTINUATION_PROMPT))

      input_count += 1
      evaluate_repl_input(source, parser, analyzer, interpreter, debug, f"<repl:{input_count}>")

    except KeyboardInterrupt:
      print("\nGoodbye!")
      break
    except EOFError:
      print("\nGoodbye!")
      break
    except Exception as e:
      print(f"Unexpected error: {e}")
      if debug:
        import traceback
        traceback.print_exc()
      print("  Hint: If this keeps happening, try restarting or use --debug for more details")


def show_language_info() -> None:
  """Show Kite language information"""
  print("Kite Programming Language")
  print("=" * 50)
  print("A small dynamically-typed scripting language with:")
  print("• let bindings with block scoping")
  print("• First-class functions and closures")
  print("• if / while / for with break and continue")
  print("• Numbers, strings, booleans and nil")
  print()
  print(f"Built-in functions: {', '.join(BUILTIN_NAMES)}")
  print()


def main() -> None:
  """Main entry point for Kite"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args()

  # Handle special cases
  if len(sys.argv) == 1:
    # No arguments - show info and start interactive mode
    show_language_info()
    print("Starting interactive mode...")
    print("Use 'kite --help' for command line options")
    print()
    run_interactive_mode(debug=False)
    return

  if args.max_depth < 1:
    arg_parser.error("--max-depth must be at least 1")

  # Handle script operations
  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist")
      sys.exit(1)

    if args.tokens:
      tokens_file(args.script, debug=args.debug)
    elif args.parse:
      parse_file(args.script, debug=args.debug)
    else:
      run_script_file(args.script, debug=args.debug, max_depth=args.max_depth)

  # Handle interactive mode
  elif args.interactive:
    run_interactive_mode(debug=args.debug, max_depth=args.max_depth)

  else:
    # Show help and language info
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
