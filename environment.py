"""
Kite runtime environments
Chained name -> value scopes, passed explicitly through every evaluation
"""

from typing import Dict, Optional, Iterator
from error_handling import (
  KiteRuntimeError,
  UNDEFINED_VARIABLE,
  UNDEFINED_ASSIGNMENT_TARGET
)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create a runtime environment linked to an optional parent"""
  return {
      'parent': parent,
      'bindings': dict(bindings) if bindings else {}
  }


def create_child(parent: Dict) -> Dict:
  """New empty scope whose lookups fall back to parent"""
  return make_runtime_env(parent)


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def iter_scopes(env: Dict) -> Iterator[Dict]:
  """Yield env and then each enclosing scope, innermost first"""
  scope = env
  while scope is not None:
    yield scope
    scope = scope['parent']


def env_define(env: Dict, name: str, value: Dict) -> None:
  """Insert or overwrite name in this scope only (shadowing is allowed)"""
  env['bindings'][name] = value


def env_get(env: Dict, name: str, span=None) -> Dict:
  """Look up a value in the environment chain"""
  for scope in iter_scopes(env):
    if name in scope['bindings']:
      return scope['bindings'][name]
  raise KiteRuntimeError(f"Undefined variable '{name}'", UNDEFINED_VARIABLE, span)


def env_assign(env: Dict, name: str, value: Dict, span=None) -> None:
  """Rebind name in the nearest scope that defines it; never creates a binding"""
  for scope in iter_scopes(env):
    if name in scope['bindings']:
      scope['bindings'][name] = value
      return
  raise KiteRuntimeError(
      f"Cannot assign to undefined variable '{name}'", UNDEFINED_ASSIGNMENT_TARGET, span)


def env_contains(env: Dict, name: str) -> bool:
  return any(name in scope['bindings'] for scope in iter_scopes(env))


def env_depth(env: Dict) -> int:
  """Number of scopes in the chain, env included"""
  return sum(1 for _ in iter_scopes(env))


def user_bindings(env: Dict) -> Dict:
  """Bindings visible from env that are not native functions, inner scopes winning"""
  visible: Dict = {}
  for scope in iter_scopes(env):
    for name, value in scope['bindings'].items():
      if name not in visible:
        visible[name] = value
  return {name: value for name, value in visible.items() if value['type'] != 'NativeFunction'}
