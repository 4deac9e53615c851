"""Branchless numeric selection utilities.

Every singularity and Taylor-series switch in the Lie group code goes through
:func:`select` instead of Python control flow. Both operands are always
evaluated, so the same code runs on floats, NumPy arrays and JAX tracers
under ``jit``, ``vmap`` and ``grad``.
"""

import enum
import functools

import jax
import jax.numpy as jnp
from typing import Union

Array = jax.Array
Scalar = Union[float, Array]

# Default Taylor-series order used to pick small-angle thresholds.
TAYLOR_ORDER = 3


class ComparisonOperator(enum.Enum):
    LT = "lt"
    LE = "le"
    EQ = "eq"
    GE = "ge"
    GT = "gt"


_COMPARE = {
    ComparisonOperator.LT: jnp.less,
    ComparisonOperator.LE: jnp.less_equal,
    ComparisonOperator.EQ: jnp.equal,
    ComparisonOperator.GE: jnp.greater_equal,
    ComparisonOperator.GT: jnp.greater,
}


def select(condition: Array, then_value: Scalar, else_value: Scalar) -> Array:
    """
    Elementwise conditional without control flow.

    Args:
        condition: boolean array (broadcastable against the values)
        then_value: value taken where ``condition`` holds
        else_value: value taken elsewhere

    Returns:
        Array with the broadcast shape of the inputs
    """
    return jnp.where(condition, then_value, else_value)


def if_then_else(
    op: ComparisonOperator,
    lhs: Scalar,
    rhs: Scalar,
    then_value: Scalar,
    else_value: Scalar,
) -> Array:
    """Evaluate ``then_value if lhs <op> rhs else else_value`` elementwise."""
    return select(_COMPARE[op](lhs, rhs), then_value, else_value)


def guard(condition: Array, value: Scalar, fill: Scalar = 1.0) -> Array:
    """
    Replace ``value`` by ``fill`` where ``condition`` is False.

    Used on denominators and function arguments of the branch that a later
    :func:`select` discards, so that it stays finite and does not poison
    gradients with ``nan``.
    """
    return select(condition, value, fill)


@functools.lru_cache(maxsize=None)
def _precision(order: int, dtype_name: str) -> float:
    eps = float(jnp.finfo(jnp.dtype(dtype_name)).eps)
    return eps ** (1.0 / order)


def taylor_precision(order: int = TAYLOR_ORDER, dtype=None) -> float:
    """
    Threshold below which a Taylor expansion of ``order`` is exact to machine precision.

    Args:
        order: order of the truncated series
        dtype: floating point type of the computation (defaults to the
            current default float type)

    Returns:
        ``eps(dtype) ** (1 / order)`` as a Python float
    """
    if order <= 0:
        raise ValueError(f"Taylor series order must be positive, got {order}")
    if dtype is None:
        dtype = jnp.zeros(()).dtype
    if not jnp.issubdtype(jnp.dtype(dtype), jnp.floating):
        dtype = jnp.zeros(()).dtype
    return _precision(order, jnp.dtype(dtype).name)
