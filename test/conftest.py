"""
Test configuration for Kite tests
"""

import io
import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser, KiteTokenizer
from interpreter import create_interpreter


@pytest.fixture
def parser():
  """Provide a fresh parser instance for each test"""
  return create_parser()


@pytest.fixture
def tokenizer():
  return KiteTokenizer("<test>")


@pytest.fixture
def output():
  """Captures everything print writes"""
  return io.StringIO()


@pytest.fixture
def interpreter(output):
  """Interpreter whose print output goes to the output fixture"""
  return create_interpreter(output=output)


@pytest.fixture
def examples_dir():
  """Get the examples directory path"""
  return project_root / "examples"
