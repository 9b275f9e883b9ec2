"""
Kite Standard Library
Runtime values, operators and the built-in native functions
Values are tagged dictionaries: {'type': <type name>, 'value': <payload>}
"""

from typing import Dict, Callable, Any, List, Optional, TextIO
import math
import operator
import sys
import time

from environment import env_define
from utilities import (
  numeric_binary_op,
  require_arg_types,
  type_mismatch_error,
  operation_error,
  is_value_dict
)


# ============================================================================
# VALUE CONSTRUCTORS
# ============================================================================

def make_value(value: Any, type_name: str = "Nil") -> Dict:
  """Create a runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_number(value: float) -> Dict:
  return make_value(float(value), "Number")


def make_string(value: str) -> Dict:
  return make_value(value, "String")


def make_boolean(value: bool) -> Dict:
  return make_value(bool(value), "Boolean")


def make_nil() -> Dict:
  return make_value(None, "Nil")


def make_native_function(name: str, func: Callable, min_arity: int, max_arity: Optional[int]) -> Dict:
  """Wrap a host callable as a Kite value; max_arity None means variadic"""
  return make_value({
      'name': name,
      'func': func,
      'min_arity': min_arity,
      'max_arity': max_arity
  }, "NativeFunction")


# ============================================================================
# TRUTHINESS AND DISPLAY
# ============================================================================

def is_truthy(value: Dict) -> bool:
  """nil, false and 0 are falsy; everything else (including "") is truthy"""
  value_type = value['type']
  if value_type == "Nil":
    return False
  if value_type == "Boolean":
    return value['value']
  if value_type == "Number":
    return value['value'] != 0
  return True


def format_number(number: float) -> str:
  if math.isfinite(number) and number == int(number):
    return str(int(number))
  return repr(number)


def kite_show(value: Dict) -> str:
  """Convert a value to its display text"""
  value_type = value['type']
  if value_type == "Number":
    return format_number(value['value'])
  elif value_type == "String":
    return value['value']
  elif value_type == "Boolean":
    return "true" if value['value'] else "false"
  elif value_type == "Nil":
    return "nil"
  elif value_type == "Function":
    return f"<fn {value['value']['name']}>"
  elif value_type == "NativeFunction":
    return f"<native fn {value['value']['name']}>"
  else:
    return f"<{value_type}>"


def kite_repr(value: Dict) -> str:
  """Display text with strings quoted, as the REPL echoes results"""
  if value['type'] == "String":
    escaped = value['value'].replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n').replace('\t', '\\t')
    return f'"{escaped}"'
  return kite_show(value)


# ============================================================================
# OPERATORS
# ============================================================================

def kite_eq(x: Dict, y: Dict) -> Dict:
  """Equality comparison; values of different types are never equal"""
  if x['type'] != y['type']:
    return make_boolean(False)
  if x['type'] in ("Function", "NativeFunction"):
    return make_boolean(x['value'] is y['value'])
  return make_boolean(x['value'] == y['value'])


def kite_ne(x: Dict, y: Dict) -> Dict:
  """Not equal comparison"""
  result = kite_eq(x, y)
  return make_boolean(not result['value'])


# Comparisons and arithmetic are defined on Numbers only
_kite_lt_impl = numeric_binary_op(operator.lt, "compare", "Boolean")
_kite_gt_impl = numeric_binary_op(operator.gt, "compare", "Boolean")
_kite_le_impl = numeric_binary_op(operator.le, "compare", "Boolean")
_kite_ge_impl = numeric_binary_op(operator.ge, "compare", "Boolean")


def kite_lt(x: Dict, y: Dict) -> Dict:
  """Less than comparison"""
  return _kite_lt_impl(x, y, make_value)


def kite_gt(x: Dict, y: Dict) -> Dict:
  """Greater than comparison"""
  return _kite_gt_impl(x, y, make_value)


def kite_le(x: Dict, y: Dict) -> Dict:
  """Less than or equal comparison"""
  return _kite_le_impl(x, y, make_value)


def kite_ge(x: Dict, y: Dict) -> Dict:
  """Greater than or equal comparison"""
  return _kite_ge_impl(x, y, make_value)


def kite_add(x: Dict, y: Dict) -> Dict:
  """Addition for numbers, concatenation for strings"""
  if x['type'] == "Number" and y['type'] == "Number":
    return make_number(x['value'] + y['value'])
  elif x['type'] == "String" and y['type'] == "String":
    return make_string(x['value'] + y['value'])
  else:
    raise operation_error("add", x['type'], y['type'])


_kite_sub_impl = numeric_binary_op(operator.sub, "subtract", "Number")
_kite_mul_impl = numeric_binary_op(operator.mul, "multiply", "Number")
_kite_div_impl = numeric_binary_op(operator.truediv, "divide", "Number", zero_divisor="Division")
_kite_mod_impl = numeric_binary_op(operator.mod, "take the modulo of", "Number", zero_divisor="Modulo")


def kite_sub(x: Dict, y: Dict) -> Dict:
  """Subtraction"""
  return _kite_sub_impl(x, y, make_value)


def kite_mul(x: Dict, y: Dict) -> Dict:
  """Multiplication"""
  return _kite_mul_impl(x, y, make_value)


def kite_div(x: Dict, y: Dict) -> Dict:
  """Division"""
  return _kite_div_impl(x, y, make_value)


def kite_mod(x: Dict, y: Dict) -> Dict:
  """Modulo; the result takes the sign of the divisor"""
  return _kite_mod_impl(x, y, make_value)


def kite_negate(x: Dict) -> Dict:
  """Unary minus"""
  if x['type'] != "Number":
    raise type_mismatch_error("Unary '-'", "its operand", "Number", x)
  return make_number(-x['value'])


def kite_not(x: Dict) -> Dict:
  """Logical negation of truthiness"""
  return make_boolean(not is_truthy(x))


# ============================================================================
# NATIVE FUNCTIONS
# ============================================================================

def kite_print(args: List[Dict], output: Optional[TextIO] = None) -> Dict:
  """Print the display text of each argument, space separated, then a newline"""
  stream = output if output is not None else sys.stdout
  stream.write(" ".join(kite_show(arg) for arg in args) + "\n")
  return make_nil()


def kite_str(args: List[Dict]) -> Dict:
  """Convert value to its display string"""
  return make_string(kite_show(args[0]))


def kite_len(args: List[Dict]) -> Dict:
  """Get length of a string"""
  require_arg_types("len", args, ["String"])
  return make_number(len(args[0]['value']))


def kite_type(args: List[Dict]) -> Dict:
  """Name of the value's type"""
  return make_string(args[0]['type'])


def kite_clock(args: List[Dict]) -> Dict:
  """Seconds since the epoch"""
  return make_number(time.time())


# ============================================================================
# NATIVE REGISTRATION
# ============================================================================

EXACT_ARITY = object()


def register_native(env: Dict, name: str, min_arity: int, native_fn: Callable,
                    max_arity: Any = EXACT_ARITY) -> Dict:
  """
  Bind a host function into env under name.

  native_fn receives the list of evaluated argument values and returns a
  value dict (a Python None is returned to Kite as nil). Arity is checked
  before the call exactly as for user functions: by default exactly
  min_arity arguments; pass max_arity=None to accept any number from
  min_arity upwards.
  """
  if max_arity is EXACT_ARITY:
    max_arity = min_arity
  native = make_native_function(name, native_fn, min_arity, max_arity)
  env_define(env, name, native)
  return native


def call_native(native: Dict, args: List[Dict]) -> Dict:
  """Invoke a native function's host code with already checked arguments"""
  result = native['value']['func'](args)
  if result is None:
    return make_nil()
  if not is_value_dict(result):
    raise TypeError(f"Native function {native['value']['name']} returned {result!r}, not a value")
  return result


def register_stdlib(env: Dict, output: Optional[TextIO] = None) -> Dict:
  """Register the built-in native functions into env"""
  register_native(env, "print", 0, lambda args: kite_print(args, output), max_arity=None)
  register_native(env, "str", 1, kite_str)
  register_native(env, "len", 1, kite_len)
  register_native(env, "type", 1, kite_type)
  register_native(env, "clock", 0, kite_clock)
  return env


BUILTIN_NAMES = ("print", "str", "len", "type", "clock")
