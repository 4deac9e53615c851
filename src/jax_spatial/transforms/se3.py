"""SE(3) and se(3) Lie group operations in JAX.

This module implements SE(3) rigid body transforms using homogeneous matrices
and 6D twist vectors ordered ``[vx, vy, vz, wx, wy, wz]`` (linear part first).
All functions are pure, JIT-able, and operate on JAX arrays. Small-angle
regimes are handled with branchless Taylor expansions.
"""

from logging import getLogger

import jax
import jax.numpy as jnp

from . import so3
from ..math_utils import guard, select, taylor_precision

Array = jax.Array

logger = getLogger(__name__)


def _check_transform_shape(T: Array, name: str = "T") -> None:
    if T.ndim < 2 or T.shape[-2:] != (4, 4):
        logger.error("%s must be a (..., 4, 4) transform, got shape %s", name, T.shape)
        raise ValueError(f"{name} must have shape (..., 4, 4), got {T.shape}")


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=jnp.result_type(p, R))
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def identity(dtype=None) -> Array:
    return jnp.eye(4, dtype=dtype)


def exp(twist: Array) -> Array:
    """
    SE(3) exponential map: convert twist to transformation matrix.

    The translation is ``V v`` with ``V = I + b K + c K^2``,
    ``b = (1 - cos)/theta^2`` and ``c = (theta - sin)/theta^3``.

    Args:
        twist: (..., 6) array of twists [vx, vy, vz, wx, wy, wz]

    Returns:
        (..., 4, 4) array of transformation matrices
    """
    twist = jnp.asarray(twist)
    v, w = twist[..., :3], twist[..., 3:]
    R = so3.exp(w)

    theta2 = jnp.sum(w * w, axis=-1)
    prec = taylor_precision(3, twist.dtype)
    large = theta2 >= prec * prec
    theta2_safe = guard(large, theta2)
    theta = jnp.sqrt(theta2_safe)

    b = select(large, 2.0 * jnp.sin(0.5 * theta) ** 2 / theta2_safe, 0.5 - theta2 / 24.0)
    c = select(large, (theta - jnp.sin(theta)) / (theta2_safe * theta), 1.0 / 6.0 - theta2 / 120.0)

    K = so3.skew_symmetric(w)
    I = jnp.broadcast_to(jnp.eye(3, dtype=K.dtype), K.shape)
    V = I + b[..., None, None] * K + c[..., None, None] * jnp.matmul(K, K)

    t = jnp.einsum("...ij,...j->...i", V, v)
    return from_position_and_rotation(t, R)


def log6(T: Array, pi_margin: float = so3.PI_LOWER_MARGIN) -> Array:
    """
    SE(3) logarithm map: convert transformation matrix to twist.

    The angular part comes from :func:`so3.log3`. The linear part is
    ``alpha p - 0.5 (w x p) + beta (w . p) w``, the closed-form inverse of the
    ``V`` matrix of :func:`exp`, with ``alpha`` and ``beta`` switched to their
    Taylor expansion near zero where the closed form divides by theta^2.

    Args:
        T: (..., 4, 4) array of transformation matrices
        pi_margin: forwarded to :func:`so3.log3`

    Returns:
        (..., 6) array of twists [vx, vy, vz, wx, wy, wz]
    """
    T = jnp.asarray(T)
    _check_transform_shape(T)
    R, p = T[..., :3, :3], T[..., :3, 3]

    theta, w = so3.log3(R, pi_margin=pi_margin)
    t2 = theta * theta
    prec = taylor_precision(3, T.dtype)

    large = theta >= prec
    ts = guard(large, theta)
    # sin / (1 - cos) == cot(theta / 2)
    st_1mct = jnp.cos(0.5 * ts) / jnp.sin(0.5 * ts)

    alpha = select(large, 0.5 * ts * st_1mct, 1.0 - t2 / 12.0 - t2 * t2 / 720.0)
    beta = select(large, 1.0 / (ts * ts) - st_1mct / (2.0 * ts), 1.0 / 12.0 + t2 / 720.0)

    w_dot_p = jnp.sum(w * p, axis=-1)
    v = (alpha[..., None] * p
         - 0.5 * jnp.cross(w, p)
         + (beta * w_dot_p)[..., None] * w)

    return jnp.concatenate([v, w], axis=-1)


def log(T: Array) -> Array:
    """SE(3) logarithm map, see :func:`log6`."""
    return log6(T)


def jlog6(T: Array, pi_margin: float = so3.PI_LOWER_MARGIN) -> Array:
    """
    Jacobian of :func:`log6` for a right perturbation ``T exp(dv)``.

    The result has the block form ``[[A, B], [0, A]]`` where ``A`` is the
    SO(3) log Jacobian of the rotation part and ``B = C A``, ``C`` being the
    derivative of the linear part of the log with respect to the rotation.

    Args:
        T: (..., 4, 4) array of transformation matrices
        pi_margin: forwarded to :func:`so3.log3`

    Returns:
        (..., 6, 6) Jacobian matrices
    """
    T = jnp.asarray(T)
    _check_transform_shape(T)
    R, p = T[..., :3, :3], T[..., :3, 3]

    theta, w = so3.log3(R, pi_margin=pi_margin)
    A = so3.jlog3(theta, w)

    prec = taylor_precision(3, T.dtype)
    t2 = theta * theta
    large = theta >= prec
    ts = guard(large, theta)
    tinv = 1.0 / ts
    t2inv = tinv * tinv
    st = jnp.sin(ts)
    inv_2_2ct = 1.0 / (4.0 * jnp.sin(0.5 * ts) ** 2)

    beta = select(large, t2inv - st * tinv * inv_2_2ct, 1.0 / 12.0 + t2 / 720.0)
    beta_dot_over_theta = select(
        large,
        -2.0 * t2inv * t2inv + (1.0 + st * tinv) * t2inv * inv_2_2ct,
        1.0 / 360.0,
    )

    w_dot_p = jnp.sum(w * p, axis=-1)
    v3 = ((beta_dot_over_theta * w_dot_p)[..., None] * w
          - (t2 * beta_dot_over_theta + 2.0 * beta)[..., None] * p)

    I = jnp.eye(3, dtype=T.dtype)
    C = v3[..., :, None] * w[..., None, :]
    C = C + beta[..., None, None] * (w[..., :, None] * p[..., None, :])
    C = C + (w_dot_p * beta)[..., None, None] * I
    C = C + so3.skew_symmetric(0.5 * p)

    B = jnp.matmul(C, A)
    zeros = jnp.zeros_like(A)

    top = jnp.concatenate([A, B], axis=-1)
    bottom = jnp.concatenate([zeros, A], axis=-1)
    return jnp.concatenate([top, bottom], axis=-2)


def jlog(T: Array, pi_margin: float = so3.PI_LOWER_MARGIN) -> Array:
    return jlog6(T, pi_margin=pi_margin)


def multiply(T1: Array, T2: Array) -> Array:
    """Compose transforms, ``T1 @ T2``."""
    return jnp.matmul(T1, T2)


def inverse(T: Array) -> Array:
    """
    Compute inverse of SE(3) transformation matrix.

    Uses the block structure: T^-1 = [[R^T, -R^T @ t], [0, 1]]

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 4, 4) inverse transformation matrix
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    R_inv = jnp.swapaxes(R, -1, -2)
    t_inv = -jnp.einsum("...ij,...j->...i", R_inv, t)

    return from_position_and_rotation(t_inv, R_inv)


def apply(T: Array, points: Array) -> Array:
    """
    Apply SE(3) transformation to points.

    Args:
        T: (..., 4, 4) transformation matrix
        points: (..., 3) or (..., N, 3) points to transform

    Returns:
        (..., 3) or (..., N, 3) transformed points
    """
    ones = jnp.ones_like(points[..., 0:1])
    points_h = jnp.concatenate([points, ones], axis=-1)
    transformed_h = jnp.einsum("...ij,...j->...i", T, points_h)
    return transformed_h[..., :3]


def get_position(T: Array) -> Array:
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    return T[..., :3, :3]


def adjoint(T: Array) -> Array:
    """
    Compute the adjoint matrix of SE(3) transformation.

    Maps twists expressed in the frame of ``T`` to the reference frame:
    ``[[R, [t]_x R], [0, R]]``.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 6, 6) adjoint matrix
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    t_skew = so3.skew_symmetric(t)
    zeros = jnp.zeros_like(R)

    top = jnp.concatenate([R, jnp.matmul(t_skew, R)], axis=-1)
    bottom = jnp.concatenate([zeros, R], axis=-1)

    return jnp.concatenate([top, bottom], axis=-2)


def adjoint_inverse(T: Array) -> Array:
    """Adjoint of ``T^-1``: ``[[R^T, -R^T [t]_x], [0, R^T]]``."""
    return adjoint(inverse(T))


def act_motion(T: Array, twist: Array) -> Array:
    """Express a twist given in the frame of ``T`` in the reference frame."""
    R, t = T[..., :3, :3], T[..., :3, 3]
    w = jnp.einsum("...ij,...j->...i", R, twist[..., 3:])
    v = jnp.einsum("...ij,...j->...i", R, twist[..., :3]) + jnp.cross(t, w)
    return jnp.concatenate([v, w], axis=-1)


def act_inv_motion(T: Array, twist: Array) -> Array:
    """Express a twist given in the reference frame in the frame of ``T``."""
    R, t = T[..., :3, :3], T[..., :3, 3]
    v, w = twist[..., :3], twist[..., 3:]
    w_local = jnp.einsum("...ji,...j->...i", R, w)
    v_local = jnp.einsum("...ji,...j->...i", R, v - jnp.cross(t, w))
    return jnp.concatenate([v_local, w_local], axis=-1)


def motion_cross(m1: Array, m2: Array) -> Array:
    """Spatial cross product of twists, ``m1 x m2``."""
    v1, w1 = m1[..., :3], m1[..., 3:]
    v2, w2 = m2[..., :3], m2[..., 3:]
    return jnp.concatenate([
        jnp.cross(w1, v2) + jnp.cross(v1, w2),
        jnp.cross(w1, w2),
    ], axis=-1)


def motion_cross_matrix(twist: Array) -> Array:
    """
    Matrix of the map ``m -> twist x m``.

    Args:
        twist: (..., 6) twist

    Returns:
        (..., 6, 6) matrix ``[[w_x, v_x], [0, w_x]]``
    """
    v_skew = so3.skew_symmetric(twist[..., :3])
    w_skew = so3.skew_symmetric(twist[..., 3:])
    zeros = jnp.zeros_like(w_skew)

    top = jnp.concatenate([w_skew, v_skew], axis=-1)
    bottom = jnp.concatenate([zeros, w_skew], axis=-1)
    return jnp.concatenate([top, bottom], axis=-2)
