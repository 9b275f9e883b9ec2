"""
Basic parsing tests for Kite language
Tests fundamental parsing capabilities
"""

import pytest
from parsing import ast_to_dict, find_nodes_by_type, pretty_print_ast
from error_handling import (
  KiteParseError,
  UNEXPECTED_TOKEN,
  EXPECTED_TOKEN,
  NESTING_TOO_DEEP
)


def statements(program):
  return program['value']['statements']


class TestBasicParsing:
  """Test basic parsing functionality"""

  def test_simple_program_parsing(self, parser):
    """Test parsing of a simple program"""
    program = parser.parse_string("let myValue = 42;")
    assert program['type'] == "PROGRAM"
    assert len(statements(program)) == 1

    let = statements(program)[0]
    assert let['type'] == "LET"
    assert let['value']['name'] == "myValue"
    assert let['value']['value']['value'] == 42.0

  def test_function_definition_parsing(self, parser):
    """Test parsing of function definitions"""
    program = parser.parse_string("fn add(a, b) { return a + b; }")
    fn = statements(program)[0]
    assert fn['type'] == "FUNCTION_DEF"
    assert fn['value']['name'] == "add"
    assert fn['value']['params'] == ("a", "b")
    assert fn['value']['body']['type'] == "BLOCK"

  def test_empty_program(self, parser):
    assert statements(parser.parse_string("")) == ()
    assert statements(parser.parse_string("  // only a comment\n")) == ()

  def test_bare_return(self, parser):
    fn = statements(parser.parse_string("fn f() { return; }"))[0]
    ret = fn['value']['body']['value']['statements'][0]
    assert ret['type'] == "RETURN"
    assert ret['value'] is None

  def test_if_else_chain(self, parser):
    program = parser.parse_string("if (a) { 1; } else if (b) { 2; } else { 3; }")
    outer = statements(program)[0]
    assert outer['type'] == "IF"
    assert outer['value']['else']['type'] == "IF"
    assert outer['value']['else']['value']['else']['type'] == "BLOCK"

  def test_trailing_semicolon_optional(self, parser):
    """The last expression of a program or block may omit its ';'"""
    assert statements(parser.parse_string("1 + 2"))[0]['type'] == "EXPRESSION_STMT"
    block = statements(parser.parse_string("{ x }"))[0]
    assert block['value']['statements'][0]['type'] == "EXPRESSION_STMT"

  def test_deterministic(self, parser):
    source = "fn f(n) { for (let i = 0; i < n; i = i + 1) { print(i); } }"
    first = ast_to_dict(parser.parse_string(source), include_spans=True)
    second = ast_to_dict(parser.parse_string(source), include_spans=True)
    assert first == second


class TestExpressions:
  """Test expression precedence and associativity"""

  def test_multiplication_binds_tighter(self, parser):
    expr = parser.parse_expression("2 + 3 * 4")
    assert expr['type'] == "BINARY"
    assert expr['value']['op'] == "+"
    assert expr['value']['right']['value']['op'] == "*"

  def test_parentheses(self, parser):
    expr = parser.parse_expression("(2 + 3) * 4")
    assert expr['value']['op'] == "*"
    assert expr['value']['left']['value']['op'] == "+"

  def test_spans_include_leading_parenthesis(self, parser):
    expr = parser.parse_expression("(2 + 3) * 4")
    assert expr['span'].text == "(2 + 3) * 4"
    assert expr['value']['left']['span'].text == "2 + 3"

    call = parser.parse_expression("(f)(1)")
    assert call['span'].text == "(f)(1)"

    assign = parser.parse_expression("x = (1) + 2")
    assert assign['span'].text == "x = (1) + 2"
    assert assign['value']['value']['span'].text == "(1) + 2"

  def test_left_associative(self, parser):
    expr = parser.parse_expression("1 - 2 - 3")
    assert expr['value']['left']['type'] == "BINARY"
    assert expr['value']['right']['type'] == "NUMBER"

  def test_logical_precedence(self, parser):
    expr = parser.parse_expression("a || b && c == d")
    assert expr['type'] == "LOGICAL"
    assert expr['value']['op'] == "||"
    right = expr['value']['right']
    assert right['type'] == "LOGICAL"
    assert right['value']['right']['type'] == "BINARY"

  def test_unary(self, parser):
    expr = parser.parse_expression("-x * 2")
    assert expr['value']['left']['type'] == "UNARY"

    expr = parser.parse_expression("!!ok")
    assert expr['value']['operand']['type'] == "UNARY"

  def test_chained_calls(self, parser):
    expr = parser.parse_expression("make()(1, 2)")
    assert expr['type'] == "CALL"
    assert expr['value']['callee']['type'] == "CALL"
    assert len(expr['value']['args']) == 2

  def test_assignment_is_right_associative(self, parser):
    expr = parser.parse_expression("a = b = 1")
    assert expr['type'] == "ASSIGN"
    assert expr['value']['name'] == "a"
    assert expr['value']['value']['type'] == "ASSIGN"
    assert expr['value']['value']['value']['name'] == "b"

  def test_literals(self, parser):
    assert parser.parse_expression("true")['value'] is True
    assert parser.parse_expression("nil")['type'] == "NIL"
    assert parser.parse_expression('"hi"')['value'] == "hi"


class TestForLoops:
  """Test that for loops are rewritten into while loops"""

  def test_for_desugars_to_while(self, parser):
    program = parser.parse_string("for (let i = 0; i < 3; i = i + 1) { print(i); }")
    assert find_nodes_by_type(program, "FOR") == []

    block = statements(program)[0]
    assert block['type'] == "BLOCK"
    init, loop = block['value']['statements']
    assert init['type'] == "LET"
    assert loop['type'] == "WHILE"
    assert loop['value']['increment']['type'] == "ASSIGN"
    assert loop['value']['body']['type'] == "BLOCK"

  def test_empty_clauses(self, parser):
    block = statements(parser.parse_string("for (;;) { break; }"))[0]
    (loop,) = block['value']['statements']
    assert loop['value']['condition']['type'] == "BOOLEAN"
    assert loop['value']['condition']['value'] is True
    assert loop['value']['increment'] is None

  def test_expression_initializer(self, parser):
    block = statements(parser.parse_string("for (i = 0; i < 3;) i = i + 1;"))[0]
    init, loop = block['value']['statements']
    assert init['type'] == "EXPRESSION_STMT"
    # A single statement body is wrapped in a block
    assert loop['value']['body']['type'] == "BLOCK"


class TestErrorHandling:
  """Test error handling and reporting"""

  def test_missing_expression(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("let x = ;")
    error = exc_info.value
    assert error.kind == UNEXPECTED_TOKEN
    assert error.expected == ["expression"]
    assert error.found == "';'"

  def test_missing_variable_name(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("let = 1;")
    assert exc_info.value.kind == EXPECTED_TOKEN
    assert exc_info.value.expected == ["variable name"]
    assert exc_info.value.found == "'='"

  def test_missing_closing_paren(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("if (x { }")
    assert exc_info.value.expected == ["')'"]
    assert exc_info.value.found == "'{'"

  def test_unclosed_block(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("{ let x = 1;")
    assert exc_info.value.expected == ["'}'"]
    assert exc_info.value.found == "end of input"

  def test_missing_semicolon_between_statements(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("print(1) print(2)")
    assert exc_info.value.expected == ["';'"]
    assert exc_info.value.found == "'print'"

  def test_error_location(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("let x = 1;\nlet = 2;")
    assert (exc_info.value.line, exc_info.value.column) == (2, 5)

  def test_invalid_assignment_target(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("1 = 2;")
    assert "Invalid assignment target" in exc_info.value.message

  def test_duplicate_parameter(self, parser):
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string("fn f(a, a) { }")
    assert "Duplicate parameter 'a'" in exc_info.value.message

  def test_trailing_input_after_expression(self, parser):
    with pytest.raises(KiteParseError):
      parser.parse_expression("1 2")

  def test_nesting_too_deep(self, parser):
    source = "(" * 5000 + "1" + ")" * 5000
    with pytest.raises(KiteParseError) as exc_info:
      parser.parse_string(source)
    assert exc_info.value.kind == NESTING_TOO_DEEP


class TestAstUtilities:
  """Test AST inspection helpers"""

  def test_pretty_print(self, parser):
    text = pretty_print_ast(parser.parse_string("let x = 1;"))
    assert text == "PROGRAM\n  LET({'name': 'x'})\n    NUMBER(1.0)\n"

  def test_find_nodes_by_type(self, parser):
    program = parser.parse_string("fn f(a) { return g(a) + h(a); } f(1);")
    calls = find_nodes_by_type(program, "CALL")
    assert sorted(c['value']['callee']['value'] for c in calls) == ["f", "g", "h"]

  def test_ast_to_dict_without_spans(self, parser):
    converted = ast_to_dict(parser.parse_expression("f(1)"))
    assert converted == {
        "type": "CALL",
        "value": {
            "callee": {"type": "IDENTIFIER", "value": "f"},
            "args": [{"type": "NUMBER", "value": 1.0}],
        },
    }
