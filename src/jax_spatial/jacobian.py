"""Joint Jacobians: assembly of the model Jacobian and per-joint extraction.

The model Jacobian ``J`` is the stack of every joint motion subspace
expressed in the world frame, one contiguous column block per joint. A joint
Jacobian is read from it by keeping the columns of the joint's ancestors and
re-expressing them in the requested :class:`ReferenceFrame`. The time
variation ``dJ`` follows the same layout.
"""

from logging import getLogger

import jax.numpy as jnp
import numpy as np
from jax import Array
from typing import Optional, Union

from .chain import check_configuration, forward_kinematics
from .core import Data, Model, ReferenceFrame
from .math_utils import select
from .transforms import se3

logger = getLogger(__name__)


def _world_columns(model: Model, data: Data) -> Array:
    """Motion subspaces of all joints expressed in the world frame, (6, nv)."""
    blocks = [
        se3.adjoint(data.oMi[i]) @ model.joints[i].motion_subspace()
        for i in range(1, model.njoints)
    ]
    if not blocks:
        return jnp.zeros((6, 0), dtype=data.J.dtype)
    return jnp.concatenate(blocks, axis=-1)


def _shift_to_origin(columns: Array, p: Array) -> Array:
    """Move the reference point of twist columns from the world origin to ``p``."""
    linear = columns[:3] + jnp.cross(columns[3:], p, axisa=0, axisb=0, axisc=0)
    return jnp.concatenate([linear, columns[3:]], axis=0)


def _check_frame(reference_frame) -> ReferenceFrame:
    if not isinstance(reference_frame, ReferenceFrame):
        logger.error("Unknown reference frame %r", reference_frame)
        raise ValueError(f"reference_frame must be a ReferenceFrame, got {reference_frame!r}")
    return reference_frame


def compute_joint_jacobians(model: Model, data: Data, q: Optional[Array] = None) -> Data:
    """Assemble the model Jacobian in the world frame.

    Args:
        model: Model containing the kinematic tree
        data: Data snapshot sized for ``model``
        q: Configuration vector of shape (nq,). When omitted, the placements
           already stored in ``data`` by a previous forward kinematics pass
           are used as is.

    Returns:
        Data with ``J`` (and ``oMi``/``liMi`` if ``q`` was given) updated
    """
    data.check(model)
    if q is not None:
        data = forward_kinematics(model, data, q)
    logger.debug("Assembling joint Jacobians for %d joints", model.njoints - 1)
    return data.replace(J=_world_columns(model, data))


def get_joint_jacobian(
    model: Model,
    data: Data,
    joint_id: Union[int, Array],
    reference_frame: ReferenceFrame,
) -> Array:
    """Extract the Jacobian of one joint frame from ``data.J``.

    Requires :func:`compute_joint_jacobians` to have been called for the
    current configuration. Columns of joints that are not ancestors of
    ``joint_id`` (the joint itself included) are zero.

    Args:
        model: Model containing the kinematic tree
        data: Data holding the assembled Jacobian
        joint_id: Joint id, a Python int or a traced integer
        reference_frame: Frame in which the result is expressed

    Returns:
        Array of shape (6, nv)
    """
    data.check(model)
    model.check_joint_id(joint_id)
    reference_frame = _check_frame(reference_frame)

    oMj = data.oMi[joint_id]
    if reference_frame == ReferenceFrame.WORLD:
        J = data.J
    elif reference_frame == ReferenceFrame.LOCAL_WORLD_ALIGNED:
        J = _shift_to_origin(data.J, se3.get_position(oMj))
    else:
        J = se3.adjoint_inverse(oMj) @ data.J

    mask = model.support_mask[joint_id]
    return select(mask[None, :], J, 0.0)


def compute_joint_jacobian(model: Model, data: Data, q: Array, joint_id: int) -> Array:
    """Jacobian of one joint frame expressed in the LOCAL frame.

    Equivalent to :func:`compute_joint_jacobians` followed by
    :func:`get_joint_jacobian` with ``ReferenceFrame.LOCAL``, but only the
    placements of the joint's ancestors are computed. Prefer the two-step form
    when several joint Jacobians are needed for the same configuration.

    Args:
        model: Model containing the kinematic tree
        data: Data snapshot sized for ``model``, left unchanged
        q: Configuration vector of shape (nq,)
        joint_id: Joint id, a Python int

    Returns:
        Array of shape (6, nv)
    """
    data.check(model)
    q = check_configuration(model, q)
    if not isinstance(joint_id, (int, np.integer)):
        raise ValueError(f"joint_id must be a Python int, got {type(joint_id).__name__}")
    joint_id = int(joint_id)
    model.check_joint_id(joint_id)

    chain = model.supports[joint_id]
    oMi = {0: jnp.eye(4, dtype=data.oMi.dtype)}
    for i in chain:
        q_i = q[model.idx_qs[i]:model.idx_qs[i] + model.nqs[i]]
        oMi[i] = oMi[model.parents[i]] @ model.joint_placements[i] @ model.joints[i].transform(q_i)

    jMo = se3.inverse(oMi[joint_id])
    J = jnp.zeros((6, model.nv), dtype=data.J.dtype)
    for i in chain:
        columns = se3.adjoint(jMo @ oMi[i]) @ model.joints[i].motion_subspace()
        J = J.at[:, model.idx_vs[i]:model.idx_vs[i] + model.nvs[i]].set(columns)
    return J


def compute_joint_jacobians_time_variation(model: Model, data: Data, q: Array, v: Array) -> Data:
    """Assemble the model Jacobian and its time variation in the world frame.

    The column block of joint ``i`` varies as ``ov_i x J_i`` where ``ov_i`` is
    the world spatial velocity of the joint frame.

    Args:
        model: Model containing the kinematic tree
        data: Data snapshot sized for ``model``
        q: Configuration vector of shape (nq,)
        v: Velocity vector of shape (nv,)

    Returns:
        Data with ``oMi``, ``liMi``, ``ov``, ``J`` and ``dJ`` updated
    """
    data = forward_kinematics(model, data, q, v)
    logger.debug("Assembling joint Jacobian time variations for %d joints", model.njoints - 1)

    J_blocks, dJ_blocks = [], []
    for i in range(1, model.njoints):
        columns = se3.adjoint(data.oMi[i]) @ model.joints[i].motion_subspace()
        J_blocks.append(columns)
        dJ_blocks.append(se3.motion_cross_matrix(data.ov[i]) @ columns)

    if not J_blocks:
        return data
    return data.replace(J=jnp.concatenate(J_blocks, axis=-1), dJ=jnp.concatenate(dJ_blocks, axis=-1))


def get_joint_jacobian_time_variation(
    model: Model,
    data: Data,
    joint_id: Union[int, Array],
    reference_frame: ReferenceFrame,
) -> Array:
    """Extract the Jacobian time variation of one joint frame from ``data.dJ``.

    Requires :func:`compute_joint_jacobians_time_variation` to have been
    called for the current configuration and velocity.

    Args:
        model: Model containing the kinematic tree
        data: Data holding ``J``, ``dJ`` and ``ov``
        joint_id: Joint id, a Python int or a traced integer
        reference_frame: Frame in which the result is expressed

    Returns:
        Array of shape (6, nv)
    """
    data.check(model)
    model.check_joint_id(joint_id)
    reference_frame = _check_frame(reference_frame)

    oMj = data.oMi[joint_id]
    ov = data.ov[joint_id]
    if reference_frame == ReferenceFrame.WORLD:
        dJ = data.dJ
    elif reference_frame == ReferenceFrame.LOCAL_WORLD_ALIGNED:
        p = se3.get_position(oMj)
        p_dot = ov[:3] + jnp.cross(ov[3:], p)
        dJ = _shift_to_origin(data.dJ, p)
        linear = dJ[:3] + jnp.cross(data.J[3:], p_dot, axisa=0, axisb=0, axisc=0)
        dJ = jnp.concatenate([linear, dJ[3:]], axis=0)
    else:
        jXo = se3.adjoint_inverse(oMj)
        v_local = se3.act_inv_motion(oMj, ov)
        dJ = jXo @ data.dJ - se3.motion_cross_matrix(v_local) @ (jXo @ data.J)

    mask = model.support_mask[joint_id]
    return select(mask[None, :], dJ, 0.0)


def joint_jacobian(
    model: Model,
    q: Array,
    joint: Union[int, str],
    reference_frame: ReferenceFrame = ReferenceFrame.LOCAL,
) -> Array:
    """One-shot Jacobian of a joint given by id or name.

    Args:
        model: Model containing the kinematic tree
        q: Configuration vector of shape (nq,)
        joint: Joint id or joint name
        reference_frame: Frame in which the result is expressed

    Returns:
        Array of shape (6, nv)
    """
    joint_id = model.get_joint_id(joint) if isinstance(joint, str) else joint
    data = compute_joint_jacobians(model, Data.from_model(model), q)
    return get_joint_jacobian(model, data, joint_id, reference_frame)
