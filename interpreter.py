"""
Kite Interpreter - Pure Functional Style
Tree-walking evaluation of dict ASTs against chained environments.
Control flow (break / continue / return) travels as explicit signal values
returned next to each result; only errors use exceptions.
"""

from typing import Any, Dict, List, Optional, Callable, Tuple, TextIO
from contextlib import contextmanager
import sys

from environment import (
  make_runtime_env,
  create_child,
  env_define,
  env_get,
  env_assign
)
from error_handling import (
  KiteError,
  KiteErrorHandler,
  KiteRuntimeError,
  NOT_CALLABLE,
  STACK_OVERFLOW
)
from parsing import create_parser
from semantics import analyze_program
from utilities import arity_error, describe_arity, is_callable_value
from stdlib import (
  make_value,
  make_number,
  make_string,
  make_boolean,
  make_nil,
  is_truthy,
  register_native as stdlib_register_native,
  register_stdlib,
  call_native,
  EXACT_ARITY,
  # Operators
  kite_add,
  kite_sub,
  kite_mul,
  kite_div,
  kite_mod,
  kite_eq,
  kite_ne,
  kite_lt,
  kite_gt,
  kite_le,
  kite_ge,
  kite_negate,
  kite_not
)


DEFAULT_MAX_DEPTH = 256

# Host frames a single Kite call may need while walking a typical body
FRAMES_PER_CALL = 30


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_signal(kind: str, value: Optional[Dict] = None) -> Dict:
  """Create a control signal: normal, break, continue or return"""
  return {
      'kind': kind,
      'value': value
  }


NORMAL = make_signal('normal')
BREAK = make_signal('break')
CONTINUE = make_signal('continue')


def make_return_signal(value: Dict) -> Dict:
  return make_signal('return', value)


def make_function(name: str, params: Tuple[str, ...], body: Dict, closure_env: Dict) -> Dict:
  """Create a function value closing over its defining environment"""
  return make_value({
      'name': name,
      'params': params,
      'body': body,
      'closure_env': closure_env
  }, "Function")


def make_execution_context(max_depth: int = DEFAULT_MAX_DEPTH, debug: bool = False) -> Dict:
  """Create an execution context tracking the current call depth"""
  return {
      'depth': 0,
      'max_depth': max_depth,
      'debug': debug
  }


# ============================================================================
# BUILT-IN OPERATIONS
# ============================================================================

BUILTIN_OPERATORS = {
    '+': kite_add,
    '-': kite_sub,
    '*': kite_mul,
    '/': kite_div,
    '%': kite_mod,
    '==': kite_eq,
    '!=': kite_ne,
    '<': kite_lt,
    '>': kite_gt,
    '<=': kite_le,
    '>=': kite_ge,
}

UNARY_OPERATORS = {
    '-': kite_negate,
    '!': kite_not,
}


def create_builtin_runtime_env(output: Optional[TextIO] = None) -> Dict:
  """Create the root runtime environment with the native functions bound"""
  env = make_runtime_env()
  register_stdlib(env, output)
  return env


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_ast(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """
  Evaluate an AST node and return (result_value, control_signal).
  Runtime errors raised without a location get this node's span.
  """
  if context['debug']:
    print(f"Evaluating: {ast_node['type']}")

  node_type = ast_node['type']

  try:
    if node_type == "NUMBER":
      return make_number(ast_node['value']), NORMAL
    elif node_type == "STRING":
      return make_string(ast_node['value']), NORMAL
    elif node_type == "BOOLEAN":
      return make_boolean(ast_node['value']), NORMAL
    elif node_type == "NIL":
      return make_nil(), NORMAL
    elif node_type == "IDENTIFIER":
      return env_get(env, ast_node['value'], ast_node['span']), NORMAL
    elif node_type == "ASSIGN":
      return eval_assign(ast_node, env, context)
    elif node_type == "LET":
      return eval_let(ast_node, env, context)
    elif node_type == "UNARY":
      return eval_unary(ast_node, env, context)
    elif node_type == "BINARY":
      return eval_binary(ast_node, env, context)
    elif node_type == "LOGICAL":
      return eval_logical(ast_node, env, context)
    elif node_type == "CALL":
      return eval_call(ast_node, env, context)
    elif node_type == "FUNCTION_DEF":
      return eval_function_def(ast_node, env, context)
    elif node_type == "BLOCK":
      return eval_block(ast_node, env, context)
    elif node_type == "IF":
      return eval_if(ast_node, env, context)
    elif node_type == "WHILE":
      return eval_while(ast_node, env, context)
    elif node_type == "RETURN":
      return eval_return(ast_node, env, context)
    elif node_type == "BREAK":
      return make_nil(), BREAK
    elif node_type == "CONTINUE":
      return make_nil(), CONTINUE
    elif node_type == "EXPRESSION_STMT":
      value, _ = eval_ast(ast_node['value'], env, context)
      return value, NORMAL
    elif node_type == "PROGRAM":
      return eval_statements(ast_node['value']['statements'], env, context)
    else:
      raise ValueError(f"Unknown node type: {node_type}")
  except KiteRuntimeError as e:
    if e.span is None:
      e.span = ast_node['span']
    raise


def eval_statements(statements: Tuple[Dict, ...], env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """Run statements in order, stopping at the first non-normal signal"""
  result = make_nil()
  for statement in statements:
    result, signal = eval_ast(statement, env, context)
    if signal is not NORMAL:
      return result, signal
  return result, NORMAL


def eval_block(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """Evaluate a block in a fresh child scope"""
  return eval_statements(ast_node['value']['statements'], create_child(env), context)


def eval_let(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """Evaluate declaration; always binds in the current scope"""
  value_dict = ast_node['value']
  value, _ = eval_ast(value_dict['value'], env, context)
  env_define(env, value_dict['name'], value)
  return make_nil(), NORMAL


def eval_assign(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """Evaluate assignment; the assigned value is the expression's result"""
  value_dict = ast_node['value']
  value, _ = eval_ast(value_dict['value'], env, context)
  env_assign(env, value_dict['name'], value, ast_node['span'])
  return value, NORMAL


def eval_unary(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  value_dict = ast_node['value']
  operand, _ = eval_ast(value_dict['operand'], env, context)
  return UNARY_OPERATORS[value_dict['op']](operand), NORMAL


def eval_binary(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """Evaluate binary operation"""
  value_dict = ast_node['value']

  # Evaluate operands
  left_val, _ = eval_ast(value_dict['left'], env, context)
  right_val, _ = eval_ast(value_dict['right'], env, context)

  op = value_dict['op']
  if op not in BUILTIN_OPERATORS:
    raise ValueError(f"Unknown operation: {op}")
  return BUILTIN_OPERATORS[op](left_val, right_val), NORMAL


def eval_logical(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """Short-circuit && and ||, yielding the operand that decided the result"""
  value_dict = ast_node['value']
  left_val, _ = eval_ast(value_dict['left'], env, context)

  if value_dict['op'] == '&&':
    if not is_truthy(left_val):
      return left_val, NORMAL
  elif is_truthy(left_val):
    return left_val, NORMAL

  right_val, _ = eval_ast(value_dict['right'], env, context)
  return right_val, NORMAL


def eval_if(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  value_dict = ast_node['value']
  condition, _ = eval_ast(value_dict['condition'], env, context)

  if is_truthy(condition):
    return eval_ast(value_dict['then'], env, context)
  if value_dict['else'] is not None:
    return eval_ast(value_dict['else'], env, context)
  return make_nil(), NORMAL


def eval_while(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """
  Loop until the condition is falsy. break ends the loop and is swallowed,
  continue ends the iteration, return leaves the loop with its signal.
  """
  value_dict = ast_node['value']
  increment = value_dict['increment']

  while True:
    condition, _ = eval_ast(value_dict['condition'], env, context)
    if not is_truthy(condition):
      break

    _, signal = eval_ast(value_dict['body'], env, context)
    if signal is BREAK:
      break
    if signal['kind'] == 'return':
      return make_nil(), signal

    if increment is not None:
      eval_ast(increment, env, context)

  return make_nil(), NORMAL


def eval_return(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  if ast_node['value'] is None:
    value = make_nil()
  else:
    value, _ = eval_ast(ast_node['value'], env, context)
  return value, make_return_signal(value)


def eval_function_def(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """Bind a closure over the defining environment under the function's name"""
  value_dict = ast_node['value']
  func = make_function(value_dict['name'], value_dict['params'], value_dict['body'], env)
  env_define(env, value_dict['name'], func)
  return make_nil(), NORMAL


def eval_call(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """Evaluate function application"""
  value_dict = ast_node['value']

  func_val, _ = eval_ast(value_dict['callee'], env, context)
  if not is_callable_value(func_val):
    raise KiteRuntimeError(
        f"Can only call functions, got {func_val['type']}", NOT_CALLABLE, ast_node['span'])

  # Arguments are evaluated left to right in the caller's scope
  args = []
  for arg_ast in value_dict['args']:
    arg_val, _ = eval_ast(arg_ast, env, context)
    args.append(arg_val)

  return call_function(func_val, args, context, ast_node['span']), NORMAL


def call_function(func_val: Dict, args: List[Dict], context: Dict, span=None) -> Dict:
  """Apply a user or native function to evaluated arguments"""
  func_data = func_val['value']

  if func_val['type'] == 'NativeFunction':
    min_arity, max_arity = func_data['min_arity'], func_data['max_arity']
    if len(args) < min_arity or (max_arity is not None and len(args) > max_arity):
      raise arity_error(func_data['name'], describe_arity(min_arity, max_arity), len(args), span)
    return call_native(func_val, args)

  params = func_data['params']
  if len(args) != len(params):
    raise arity_error(func_data['name'], str(len(params)), len(args), span)

  if context['depth'] >= context['max_depth']:
    raise KiteRuntimeError(
        f"Maximum call depth of {context['max_depth']} exceeded in '{func_data['name']}'",
        STACK_OVERFLOW, span)

  # Parameters live in a child of the closure scope, not of the call site
  call_env = create_child(func_data['closure_env'])
  for name, arg in zip(params, args):
    env_define(call_env, name, arg)

  context['depth'] += 1
  try:
    _, signal = eval_statements(func_data['body']['value']['statements'], call_env, context)
  finally:
    context['depth'] -= 1

  if signal['kind'] == 'return':
    return signal['value']
  return make_nil()


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

@contextmanager
def host_recursion_limit(max_depth: int):
  """Raise the host recursion limit so max_depth, not the host stack, is what trips"""
  previous = sys.getrecursionlimit()
  needed = previous + max_depth * FRAMES_PER_CALL
  sys.setrecursionlimit(needed)
  try:
    yield
  finally:
    sys.setrecursionlimit(previous)


def evaluate(ast_node: Dict, env: Dict, context: Dict) -> Tuple[Dict, Dict]:
  """
  Evaluate any node under the recursion guard and return (value, signal).
  Host stack exhaustion surfaces as a StackOverflow runtime error.
  """
  with host_recursion_limit(context['max_depth']):
    try:
      return eval_ast(ast_node, env, context)
    except RecursionError:
      raise KiteRuntimeError(
          "Host stack exhausted while evaluating", STACK_OVERFLOW, ast_node['span']) from None


def eval_program(program: Dict, env: Dict, context: Dict) -> Dict:
  """
  Evaluate a PROGRAM node in env and return its value: the value of the
  last top-level statement, or the value of a top-level return.
  """
  value, signal = evaluate(program, env, context)
  if signal['kind'] == 'return':
    return signal['value']
  return value


# ============================================================================
# FACTORY FUNCTIONS (for main.py and embedding hosts)
# ============================================================================

def create_interpreter(debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH,
                       output: Optional[TextIO] = None):
  """
  Factory function returning an interpreter with a persistent root
  environment. Successive interpret/run calls share global bindings, which
  is what the REPL relies on.
  """
  global_env = create_builtin_runtime_env(output)
  context = make_execution_context(max_depth, debug)
  parser = create_parser(debug)
  # Every successfully parsed source, newest last; closures keep spans into them
  handlers: List[KiteErrorHandler] = []

  def interpret(program: Dict) -> Dict:
    return eval_program(program, global_env, context)

  def remember(source: str, filename: str) -> KiteErrorHandler:
    handler = KiteErrorHandler(source, filename)
    handlers.append(handler)
    return handler

  def enhance(error: KiteError, fallback: Optional[KiteErrorHandler] = None) -> KiteError:
    """Attach source context from whichever remembered source the error's span points into"""
    if error.span is not None:
      for handler in reversed(handlers):
        if handler.owns(error.span):
          return handler.enhance(error)
    if fallback is not None:
      return fallback.enhance(error)
    return error

  def run(source: str, filename: str = "<input>") -> Dict:
    """Parse, analyze and evaluate source; errors carry source context"""
    handler = KiteErrorHandler(source, filename)
    try:
      program = analyze_program(parser.parse_string(source, filename), debug)
    except KiteError as e:
      handler.enhance(e)
      raise

    handlers.append(handler)
    try:
      return interpret(program)
    except KiteError as e:
      enhance(e, handler)
      raise

  def evaluate_node(ast_node: Dict, env: Optional[Dict] = None) -> Tuple[Dict, Dict]:
    return evaluate(ast_node, global_env if env is None else env, context)

  def call(func_val: Dict, args: List[Dict]) -> Dict:
    """Call a Kite function value from host code"""
    if not is_callable_value(func_val):
      raise KiteRuntimeError(f"Can only call functions, got {func_val['type']}", NOT_CALLABLE)
    with host_recursion_limit(max_depth):
      return call_function(func_val, list(args), context)

  def register_native(name: str, min_arity: int, native_fn: Callable, max_arity: Any = EXACT_ARITY) -> Dict:
    return stdlib_register_native(global_env, name, min_arity, native_fn, max_arity)

  return type('Interpreter', (), {
      'global_env': global_env,
      'context': context,
      'interpret': lambda self, program: interpret(program),
      'run': lambda self, source, filename="<input>": run(source, filename),
      'remember': lambda self, source, filename: remember(source, filename),
      'enhance': lambda self, error, fallback=None: enhance(error, fallback),
      'evaluate': lambda self, ast_node, env=None: evaluate_node(ast_node, env),
      'call': lambda self, func_val, args: call(func_val, args),
      'register_native': lambda self, name, min_arity, native_fn, max_arity=EXACT_ARITY:
          register_native(name, min_arity, native_fn, max_arity),
  })()


def create_debug_interpreter():
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
