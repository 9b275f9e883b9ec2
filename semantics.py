"""
Kite AST and Semantic Analysis - Pure Functional Style
Node constructors, the for-loop desugaring, and static control-flow checks
"""

from typing import Any, Dict, List, Optional, Sequence
from error_handling import KiteSemanticsError


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_ast_node(node_type: str, value: Any, span=None) -> Dict:
  """Create an AST node dictionary; nodes are never mutated after creation"""
  return {
      'type': node_type,
      'value': value,
      'span': span
  }


def make_number_node(value: float, span=None) -> Dict:
  return make_ast_node("NUMBER", float(value), span)


def make_string_node(value: str, span=None) -> Dict:
  return make_ast_node("STRING", value, span)


def make_boolean_node(value: bool, span=None) -> Dict:
  return make_ast_node("BOOLEAN", value, span)


def make_nil_node(span=None) -> Dict:
  return make_ast_node("NIL", None, span)


def make_identifier_node(name: str, span=None) -> Dict:
  return make_ast_node("IDENTIFIER", name, span)


def make_assign_node(name: str, value: Dict, span=None) -> Dict:
  """Assignment to an existing binding (name = value)"""
  return make_ast_node("ASSIGN", {'name': name, 'value': value}, span)


def make_let_node(name: str, value: Dict, span=None) -> Dict:
  """Declaration in the current scope (let name = value)"""
  return make_ast_node("LET", {'name': name, 'value': value}, span)


def make_unary_node(op: str, operand: Dict, span=None) -> Dict:
  return make_ast_node("UNARY", {'op': op, 'operand': operand}, span)


def make_binary_node(op: str, left: Dict, right: Dict, span=None) -> Dict:
  return make_ast_node("BINARY", {'op': op, 'left': left, 'right': right}, span)


def make_logical_node(op: str, left: Dict, right: Dict, span=None) -> Dict:
  """Short-circuiting && / ||"""
  return make_ast_node("LOGICAL", {'op': op, 'left': left, 'right': right}, span)


def make_call_node(callee: Dict, args: Sequence[Dict], span=None) -> Dict:
  return make_ast_node("CALL", {'callee': callee, 'args': tuple(args)}, span)


def make_function_def_node(name: str, params: Sequence[str], body: Dict, span=None) -> Dict:
  return make_ast_node("FUNCTION_DEF", {
      'name': name,
      'params': tuple(params),
      'body': body
  }, span)


def make_block_node(statements: Sequence[Dict], span=None) -> Dict:
  return make_ast_node("BLOCK", {'statements': tuple(statements)}, span)


def make_if_node(condition: Dict, then_branch: Dict, else_branch: Optional[Dict] = None, span=None) -> Dict:
  return make_ast_node("IF", {
      'condition': condition,
      'then': then_branch,
      'else': else_branch
  }, span)


def make_while_node(condition: Dict, body: Dict, increment: Optional[Dict] = None, span=None) -> Dict:
  """
  Loop node. The optional increment only comes from a desugared for loop;
  it runs after every iteration that was not ended by break or return,
  including iterations ended by continue.
  """
  return make_ast_node("WHILE", {
      'condition': condition,
      'body': body,
      'increment': increment
  }, span)


def make_return_node(value: Optional[Dict] = None, span=None) -> Dict:
  return make_ast_node("RETURN", value, span)


def make_break_node(span=None) -> Dict:
  return make_ast_node("BREAK", None, span)


def make_continue_node(span=None) -> Dict:
  return make_ast_node("CONTINUE", None, span)


def make_expression_stmt_node(expression: Dict, span=None) -> Dict:
  return make_ast_node("EXPRESSION_STMT", expression, span)


def make_program_node(statements: Sequence[Dict], span=None) -> Dict:
  return make_ast_node("PROGRAM", {'statements': tuple(statements)}, span)


# ============================================================================
# DESUGARING
# ============================================================================

def desugar_for(init: Optional[Dict], condition: Optional[Dict], increment: Optional[Dict],
                body: Dict, span=None) -> Dict:
  """
  Rewrite `for (init; cond; incr) body` as

      { init; while (cond) { body } incr }

  where incr is attached to the WHILE node so that continue still reaches it.
  The enclosing block scopes the init binding to the loop. A missing
  condition loops forever (until break or return).
  """
  if condition is None:
    condition = make_boolean_node(True, span)

  loop_body = body if body['type'] == "BLOCK" else make_block_node([body], body['span'])
  loop = make_while_node(condition, loop_body, increment, span)

  statements: List[Dict] = []
  if init is not None:
    statements.append(init)
  statements.append(loop)
  return make_block_node(statements, span)


# ============================================================================
# CONTROL FLOW ANALYSIS
# ============================================================================

def make_analysis_context(loop_depth: int = 0) -> Dict:
  """Create an immutable analysis context"""
  return {
      'loop_depth': loop_depth
  }


def analyze_node(node: Optional[Dict], context: Dict, debug: bool = False) -> None:
  """Check one node and its children; raises KiteSemanticsError on misuse"""
  if node is None:
    return

  node_type = node['type']
  value = node['value']

  if debug:
    print(f"Analyzing: {node_type}")

  if node_type in ("BREAK", "CONTINUE"):
    if context['loop_depth'] == 0:
      keyword = node_type.lower()
      raise KiteSemanticsError(f"'{keyword}' outside of a loop", node['span'])

  elif node_type in ("PROGRAM", "BLOCK"):
    for statement in value['statements']:
      analyze_node(statement, context, debug)

  elif node_type == "FUNCTION_DEF":
    # A function body starts a fresh loop context
    analyze_node(value['body'], make_analysis_context(), debug)

  elif node_type == "WHILE":
    analyze_node(value['condition'], context, debug)
    loop_context = make_analysis_context(context['loop_depth'] + 1)
    analyze_node(value['body'], loop_context, debug)
    analyze_node(value['increment'], context, debug)

  elif node_type == "IF":
    analyze_node(value['condition'], context, debug)
    analyze_node(value['then'], context, debug)
    analyze_node(value['else'], context, debug)

  elif node_type in ("LET", "ASSIGN"):
    analyze_node(value['value'], context, debug)

  elif node_type == "UNARY":
    analyze_node(value['operand'], context, debug)

  elif node_type in ("BINARY", "LOGICAL"):
    analyze_node(value['left'], context, debug)
    analyze_node(value['right'], context, debug)

  elif node_type == "CALL":
    analyze_node(value['callee'], context, debug)
    for arg in value['args']:
      analyze_node(arg, context, debug)

  elif node_type in ("RETURN", "EXPRESSION_STMT"):
    analyze_node(value, context, debug)


def analyze_program(program: Dict, debug: bool = False) -> Dict:
  """Analyze a parsed PROGRAM node and return it unchanged when valid"""
  analyze_node(program, make_analysis_context(), debug)
  return program


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_analyzer(debug: bool = False):
  """Factory function returning an analyzer"""
  return type('Analyzer', (), {
      'debug': debug,
      'analyze': lambda self, program: analyze_program(program, debug),
  })()


def create_debug_analyzer():
  """Factory function returning a debug analyzer"""
  return create_analyzer(debug=True)
