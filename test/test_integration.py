"""
Integration tests for Kite using real example files
"""

import io
import pytest
from pathlib import Path
from interpreter import create_interpreter
from parsing import create_parser, ast_to_dict
from error_handling import KiteError


EXPECTED_OUTPUT = {
    "fibonacci.kite": "0\n1\n1\n2\n3\n5\n8\n13\n21\n34\nfib_iter(30) = 832040\n",
    "closures.kite": "3 20\n12\n11\n",
    "loops.kite": (
        "1\n2\nFizz\n4\nBuzz\nFizz\n7\n8\nFizz\nBuzz\n11\nFizz\n13\n14\nFizzBuzz\n"
        "first square above 50: 64\n"
    ),
    "strings.kite": "Hello, Kite!\n12\nString Number Nil NativeFunction\ntab:\there\n1.5 and true\n",
}


def run_file(path: Path) -> str:
  output = io.StringIO()
  interpreter = create_interpreter(output=output)
  try:
    interpreter.run(path.read_text(encoding='utf-8'), str(path))
  except KiteError as e:
    pytest.fail(f"Failed to run {path}:\n{e}")
  return output.getvalue()


class TestFileIntegration:
  """Test running complete example files"""

  @pytest.mark.parametrize("filename", sorted(EXPECTED_OUTPUT))
  def test_example_output(self, examples_dir, filename):
    example = examples_dir / filename
    if not example.exists():
      pytest.skip(f"Example file {example} not found")
    assert run_file(example) == EXPECTED_OUTPUT[filename]

  def test_every_example_is_checked(self, examples_dir):
    found = {path.name for path in examples_dir.glob("*.kite")}
    assert found == set(EXPECTED_OUTPUT)

  def test_examples_parse_deterministically(self, examples_dir):
    parser = create_parser()
    for example in sorted(examples_dir.glob("*.kite")):
      source = example.read_text(encoding='utf-8')
      first = ast_to_dict(parser.parse_string(source, str(example)), include_spans=True)
      second = ast_to_dict(parser.parse_string(source, str(example)), include_spans=True)
      assert first == second, f"{example.name} parsed differently twice"
