"""SO(3) and so(3) Lie group operations in JAX.

Rotations are 3x3 matrices, their Lie algebra elements are rotation vectors
(axis times angle). The logarithm and its Jacobian switch between closed-form
expressions and Taylor expansions near zero, and between the antisymmetric
and the diagonal recovery formula near pi, without Python control flow: all
switches go through :mod:`jax_spatial.math_utils`.
"""

from logging import getLogger

import jax
import jax.numpy as jnp
from typing import Tuple

from ..math_utils import ComparisonOperator, guard, if_then_else, select, taylor_precision

Array = jax.Array

logger = getLogger(__name__)

# Lower margin below pi where the diagonal recovery formula takes over.
# From tests against perturbed rotations, 1e-6 is too small in float64.
PI_LOWER_MARGIN = 1e-2


def _check_rotation_shape(R: Array, name: str = "R") -> None:
    if R.ndim < 2 or R.shape[-2:] != (3, 3):
        logger.error("%s must be a (..., 3, 3) rotation, got shape %s", name, R.shape)
        raise ValueError(f"{name} must have shape (..., 3, 3), got {R.shape}")


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) matrix ``K`` such that ``K @ u == cross(v, u)``
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def unskew(K: Array) -> Array:
    """Vee operator: vector of the antisymmetric part of ``K``."""
    return 0.5 * jnp.stack([
        K[..., 2, 1] - K[..., 1, 2],
        K[..., 0, 2] - K[..., 2, 0],
        K[..., 1, 0] - K[..., 0, 1],
    ], axis=-1)


def exp(r: Array) -> Array:
    """
    SO(3) exponential map: convert rotation vector to rotation matrix.

    Rodrigues' formula ``R = I + a K + b K^2`` with ``a = sin(theta)/theta``
    and ``b = (1 - cos(theta))/theta^2``, both replaced by their Taylor
    expansion for small angles.

    Args:
        r: (..., 3) array of rotation vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    r = jnp.asarray(r)
    theta2 = jnp.sum(r * r, axis=-1)
    prec = taylor_precision(3, r.dtype)
    large = theta2 >= prec * prec

    theta2_safe = guard(large, theta2)
    theta = jnp.sqrt(theta2_safe)

    # 1 - cos(theta) as 2 sin^2(theta/2) to avoid cancellation near zero
    one_minus_cos = 2.0 * jnp.sin(0.5 * theta) ** 2
    a = select(large, jnp.sin(theta) / theta, 1.0 - theta2 / 6.0)
    b = select(large, one_minus_cos / theta2_safe, 0.5 - theta2 / 24.0)

    K = skew_symmetric(r)
    I = jnp.broadcast_to(jnp.eye(3, dtype=K.dtype), K.shape)

    return I + a[..., None, None] * K + b[..., None, None] * jnp.matmul(K, K)


def log3(R: Array, pi_margin: float = PI_LOWER_MARGIN) -> Tuple[Array, Array]:
    """
    SO(3) logarithm map returning both the angle and the rotation vector.

    Away from pi the rotation vector is read from the antisymmetric part
    ``R - R^T``, scaled by ``theta / (2 sin(theta))``. Within ``pi_margin`` of
    pi that part vanishes, so each component is recovered from the diagonal
    instead and its sign from the antisymmetric part.

    Args:
        R: (..., 3, 3) array of rotation matrices
        pi_margin: width of the band below pi handled by the diagonal formula

    Returns:
        theta: (...,) rotation angles in [0, pi]
        r: (..., 3) rotation vectors with ``exp(r) == R``
    """
    R = jnp.asarray(R)
    _check_rotation_shape(R)

    pi = jnp.pi
    prec = taylor_precision(3, R.dtype)

    tr = jnp.trace(R, axis1=-2, axis2=-1)
    in_range = (tr < 3.0) & (tr > -1.0)
    cos_theta = guard(in_range, (tr - 1.0) / 2.0, 0.0)
    theta = if_then_else(
        ComparisonOperator.GE, tr, 3.0,
        0.0,
        if_then_else(ComparisonOperator.LE, tr, -1.0, pi, jnp.arccos(cos_theta)),
    )
    tr = jnp.clip(tr, -1.0, 3.0)

    # theta / sin(theta), exact to machine precision by 1 near zero
    not_small = theta > prec
    theta_safe = guard(not_small, theta)
    t = select(not_small, theta_safe / jnp.sin(theta_safe), 1.0) / 2.0

    near_pi = theta >= pi - pi_margin
    cphi = -(tr - 1.0) / 2.0
    beta = theta * theta / guard(near_pi, 1.0 + cphi)
    diag = jnp.diagonal(R, axis1=-2, axis2=-1)
    tmp = (diag + cphi[..., None]) * beta[..., None]
    positive = tmp > 0.0
    magnitude = select(positive, jnp.sqrt(guard(positive, tmp)), 0.0)

    upper = jnp.stack([R[..., 2, 1], R[..., 0, 2], R[..., 1, 0]], axis=-1)
    lower = jnp.stack([R[..., 1, 2], R[..., 2, 0], R[..., 0, 1]], axis=-1)
    sign = if_then_else(ComparisonOperator.GT, upper, lower, 1.0, -1.0)

    r = select(near_pi[..., None], sign * magnitude, t[..., None] * (upper - lower))
    return theta, r


def log(R: Array) -> Array:
    """
    SO(3) logarithm map: convert rotation matrix to rotation vector.

    Args:
        R: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of rotation vectors
    """
    return log3(R)[1]


def jlog3(theta: Array, r: Array) -> Array:
    """
    Jacobian of :func:`log3` for a right perturbation ``R exp(dr)``.

    ``J = alpha r r^T + beta I + skew(r) / 2`` with ``alpha`` and ``beta``
    switched to their Taylor expansion below the precision threshold, where
    the closed form divides by theta^2.

    Args:
        theta: (...,) rotation angles, as returned by :func:`log3`
        r: (..., 3) rotation vectors, as returned by :func:`log3`

    Returns:
        (..., 3, 3) Jacobian matrices
    """
    theta = jnp.asarray(theta)
    r = jnp.asarray(r)
    prec = taylor_precision(3, r.dtype)

    large = theta >= prec
    ts = guard(large, theta)
    # sin / (1 - cos) == cot(theta / 2)
    st_1mct = jnp.cos(0.5 * ts) / jnp.sin(0.5 * ts)

    alpha = select(
        large,
        1.0 / (ts * ts) - st_1mct / (2.0 * ts),
        1.0 / 12.0 + theta * theta / 720.0,
    )
    diag_value = select(
        large,
        0.5 * (ts * st_1mct),
        0.5 * (2.0 - theta * theta / 6.0),
    )

    I = jnp.eye(3, dtype=r.dtype)
    J = alpha[..., None, None] * (r[..., :, None] * r[..., None, :])
    J = J + diag_value[..., None, None] * I
    return J + skew_symmetric(0.5 * r)


def jlog(R: Array, pi_margin: float = PI_LOWER_MARGIN) -> Array:
    """Jacobian of the SO(3) logarithm evaluated at ``R``."""
    theta, r = log3(R, pi_margin=pi_margin)
    return jlog3(theta, r)


def jexp3(r: Array) -> Array:
    """
    Right Jacobian of :func:`exp`, the inverse of :func:`jlog3`.

    Args:
        r: (..., 3) rotation vectors

    Returns:
        (..., 3, 3) matrices ``I - a K + b K^2``
    """
    r = jnp.asarray(r)
    theta2 = jnp.sum(r * r, axis=-1)
    prec = taylor_precision(3, r.dtype)
    large = theta2 >= prec * prec

    theta2_safe = guard(large, theta2)
    theta = jnp.sqrt(theta2_safe)

    a = select(large, 2.0 * jnp.sin(0.5 * theta) ** 2 / theta2_safe, 0.5 - theta2 / 24.0)
    b = select(large, (theta - jnp.sin(theta)) / (theta2_safe * theta), 1.0 / 6.0 - theta2 / 120.0)

    K = skew_symmetric(r)
    I = jnp.broadcast_to(jnp.eye(3, dtype=K.dtype), K.shape)
    return I - a[..., None, None] * K + b[..., None, None] * jnp.matmul(K, K)


def multiply(R1: Array, R2: Array) -> Array:
    """Compose rotations, ``R1 @ R2``."""
    return jnp.matmul(R1, R2)


def inverse(R: Array) -> Array:
    """Inverse of a rotation matrix, its transpose."""
    return jnp.swapaxes(R, -1, -2)


def apply(R: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    if v.ndim == R.ndim - 1:
        return jnp.einsum('...ij,...j->...i', R, v)
    return jnp.einsum('...ij,...nj->...ni', R, v)


def from_quaternion(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (w, x, y, z) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    quaternions = quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)
    w, x, y, z = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    return jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)
