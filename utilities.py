"""
Utilities module for the Kite interpreter
Contains common helper functions to reduce code duplication
"""

from typing import Any, Dict, List, Optional, Callable

from error_handling import (
  KiteRuntimeError,
  TYPE_MISMATCH,
  ARITY_MISMATCH,
  DIVISION_BY_ZERO
)


# ==================== TYPE CHECKING UTILITIES ====================

def is_value_dict(val: Any) -> bool:
  """
  Check if value is a wrapped value dict

  Args:
    val: Value to check

  Returns:
    True if val is a dict with 'type' and 'value' keys
  """
  return isinstance(val, dict) and 'type' in val and 'value' in val


def get_dict_type(val: Dict) -> Optional[str]:
  """
  Safely get type from dict

  Args:
    val: Value dict

  Returns:
    Type string or None
  """
  return val.get('type') if isinstance(val, dict) else None


def is_callable_value(val: Dict) -> bool:
  return get_dict_type(val) in ('Function', 'NativeFunction')


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  func_name: str,
  param_name: str,
  expected: str,
  actual: Dict
) -> KiteRuntimeError:
  """
  Generate type mismatch error

  Args:
    func_name: Function name
    param_name: Parameter name
    expected: Expected type
    actual: Actual value dict

  Returns:
    KiteRuntimeError with formatted message
  """
  actual_type = get_dict_type(actual) or 'Unknown'
  return KiteRuntimeError(
    f"{func_name} requires {expected} for {param_name}, got {actual_type}",
    TYPE_MISMATCH
  )


def describe_arity(min_arity: int, max_arity: Optional[int]) -> str:
  """Render an arity range as text: '2', 'at least 1', '1 to 3'"""
  if max_arity is None:
    return f"at least {min_arity}"
  if max_arity == min_arity:
    return str(min_arity)
  return f"{min_arity} to {max_arity}"


def arity_error(func_name: str, expected: str, got: int, span=None) -> KiteRuntimeError:
  """
  Generate arity mismatch error

  Args:
    func_name: Function name
    expected: Expected number of arguments, as text
    got: Actual number of arguments
    span: Location of the offending call

  Returns:
    KiteRuntimeError with formatted message
  """
  plural = "" if expected == "1" else "s"
  return KiteRuntimeError(
    f"{func_name} expects {expected} argument{plural}, got {got}",
    ARITY_MISMATCH,
    span
  )


def operation_error(
  op: str,
  left_type: str,
  right_type: str
) -> KiteRuntimeError:
  """
  Generate operation error

  Args:
    op: Operation name
    left_type: Left operand type
    right_type: Right operand type

  Returns:
    KiteRuntimeError with formatted message
  """
  return KiteRuntimeError(
    f"Cannot {op} {left_type} and {right_type}",
    TYPE_MISMATCH
  )


def division_by_zero_error(op: str) -> KiteRuntimeError:
  return KiteRuntimeError(f"{op} by zero", DIVISION_BY_ZERO)


# ==================== VALIDATION UTILITIES ====================

def require_arg_types(func_name: str, args: List[Dict], expected_types: List[str]) -> None:
  """
  Check each argument against the type name at the same position.
  Arity was already enforced by the call site, so only types are checked here.

  Raises:
    KiteRuntimeError (TypeMismatch) naming the first offending argument
  """
  for position, (arg, expected) in enumerate(zip(args, expected_types), start=1):
    if get_dict_type(arg) != expected:
      raise type_mismatch_error(func_name, f"argument {position}", expected, arg)


# ==================== NUMERIC OPERATOR FACTORY ====================

def numeric_binary_op(
  op: Callable[[float, float], Any],
  op_name: str,
  result_type: str,
  zero_divisor: Optional[str] = None
) -> Callable[[Dict, Dict, Callable], Dict]:
  """
  Build a binary operator defined only on Numbers.

  The returned function takes both operands plus the value constructor and
  wraps op's result as result_type. A non-Number operand on either side is a
  TypeMismatch. With zero_divisor set ("Division", "Modulo"), a zero right
  operand is a DivisionByZero.

  Examples:
    kite_lt = numeric_binary_op(operator.lt, "compare", "Boolean")
    kite_lt({"type": "Number", "value": 1.0}, {"type": "Number", "value": 2.0}, make_value)
  """
  def apply(x: Dict, y: Dict, make_value: Callable) -> Dict:
    if x['type'] != "Number" or y['type'] != "Number":
      raise operation_error(op_name, x['type'], y['type'])
    if zero_divisor and y['value'] == 0:
      raise division_by_zero_error(zero_divisor)
    return make_value(op(x['value'], y['value']), result_type)

  return apply
