"""
Environment chain tests
"""

import pytest
from environment import (
  make_runtime_env,
  create_child,
  env_define,
  env_get,
  env_assign,
  env_contains,
  env_depth,
  user_bindings
)
from stdlib import make_number, make_native_function
from error_handling import KiteRuntimeError, UNDEFINED_VARIABLE, UNDEFINED_ASSIGNMENT_TARGET


class TestEnvironment:

  @pytest.fixture
  def root(self):
    env = make_runtime_env()
    env_define(env, "x", make_number(1))
    return env

  def test_lookup_walks_parents(self, root):
    inner = create_child(create_child(root))
    assert env_get(inner, "x") == make_number(1)
    assert env_depth(inner) == 3

  def test_define_shadows(self, root):
    child = create_child(root)
    env_define(child, "x", make_number(2))
    assert env_get(child, "x")['value'] == 2.0
    assert env_get(root, "x")['value'] == 1.0

  def test_assign_updates_nearest_binding(self, root):
    child = create_child(root)
    env_assign(child, "x", make_number(5))
    assert env_get(root, "x")['value'] == 5.0
    assert "x" not in child['bindings']

  def test_undefined_lookup(self, root):
    with pytest.raises(KiteRuntimeError) as exc_info:
      env_get(root, "missing")
    assert exc_info.value.kind == UNDEFINED_VARIABLE

  def test_assign_never_creates(self, root):
    with pytest.raises(KiteRuntimeError) as exc_info:
      env_assign(create_child(root), "y", make_number(1))
    assert exc_info.value.kind == UNDEFINED_ASSIGNMENT_TARGET
    assert not env_contains(root, "y")

  def test_initial_bindings_are_copied(self):
    bindings = {"a": make_number(1)}
    env = make_runtime_env(bindings=bindings)
    env_define(env, "b", make_number(2))
    assert "b" not in bindings

  def test_user_bindings_hide_natives(self, root):
    env_define(root, "print", make_native_function("print", lambda args: None, 0, None))
    child = create_child(root)
    env_define(child, "x", make_number(9))
    visible = user_bindings(child)
    assert list(visible) == ["x"]
    assert visible["x"]['value'] == 9.0
