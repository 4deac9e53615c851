"""Forward kinematics over a kinematic tree.

Computes the placement of every joint frame relative to its parent and to
the world, and optionally the spatial velocity of every joint frame, for use
by the Jacobian algorithms in :mod:`jax_spatial.jacobian`.
"""

from logging import getLogger

import jax.numpy as jnp
from jax import Array
from typing import Optional

from .core import Data, Model
from .transforms import se3

logger = getLogger(__name__)


def check_configuration(model: Model, q: Array, name: str = "q", size: Optional[int] = None) -> Array:
    """Return ``q`` as an array, raising ``ValueError`` if its length does not match the model."""
    q = jnp.asarray(q)
    size = model.nq if size is None else size
    if q.shape != (size,):
        logger.error("%s has shape %s, model expects (%d,)", name, q.shape, size)
        raise ValueError(f"{name} must have shape ({size},), got {q.shape}")
    return q


def forward_kinematics(model: Model, data: Data, q: Array, v: Optional[Array] = None) -> Data:
    """Compute joint placements, and joint velocities when ``v`` is given.

    Args:
        model: Model containing the kinematic tree
        data: Data snapshot sized for ``model``
        q: Configuration vector of shape (nq,)
        v: Optional velocity vector of shape (nv,)

    Returns:
        Data with ``liMi``, ``oMi`` and, if ``v`` was given, ``ov`` updated
    """
    data.check(model)
    q = check_configuration(model, q)
    if v is not None:
        v = check_configuration(model, v, name="v", size=model.nv)

    dtype = data.oMi.dtype
    oMi = [jnp.eye(4, dtype=dtype)]
    liMi = [jnp.eye(4, dtype=dtype)]
    ov = [jnp.zeros(6, dtype=dtype)]

    for i in range(1, model.njoints):
        joint = model.joints[i]
        parent = model.parents[i]
        q_i = q[model.idx_qs[i]:model.idx_qs[i] + model.nqs[i]]

        liMi.append(model.joint_placements[i] @ joint.transform(q_i))
        oMi.append(oMi[parent] @ liMi[i])

        if v is not None:
            v_i = v[model.idx_vs[i]:model.idx_vs[i] + model.nvs[i]]
            ov.append(ov[parent] + se3.act_motion(oMi[i], joint.motion_subspace() @ v_i))

    data = data.replace(oMi=jnp.stack(oMi), liMi=jnp.stack(liMi))
    if v is not None:
        data = data.replace(ov=jnp.stack(ov))
    return data


def forward_kinematics_world(model: Model, q: Array) -> Array:
    """World placements of all joint frames.

    Args:
        model: Model containing the kinematic tree
        q: Configuration vector of shape (nq,)

    Returns:
        Array of shape (njoints, 4, 4)
    """
    return forward_kinematics(model, Data.from_model(model), q).oMi
