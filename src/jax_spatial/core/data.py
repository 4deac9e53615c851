"""Per-query data snapshot filled by the kinematics algorithms."""

from logging import getLogger

import jax
import jax.numpy as jnp
from flax import struct

from .robot_model import Model

Array = jax.Array

logger = getLogger(__name__)


@struct.dataclass
class Data:
    """Immutable PyTree holding the results of the kinematics algorithms.

    Algorithms never mutate a ``Data``; they return a new one with the
    updated fields. A field is only meaningful for the configuration of the
    call that produced it.

    Attributes:
        oMi: Array (njoints, 4, 4), placement of each joint frame in the world.
        liMi: Array (njoints, 4, 4), placement of each joint frame relative to
              its parent joint frame.
        ov: Array (njoints, 6), spatial velocity of each joint frame expressed
            in the world frame.
        J: Array (6, nv), stack of all joint motion subspaces expressed in the
           world frame.
        dJ: Array (6, nv), time variation of ``J``.
    """
    oMi: Array
    liMi: Array
    ov: Array
    J: Array
    dJ: Array

    @classmethod
    def from_model(cls, model: Model, dtype=None) -> "Data":
        """Zero-initialised snapshot sized for ``model``."""
        dtype = model.joint_placements.dtype if dtype is None else dtype
        identities = jnp.broadcast_to(jnp.eye(4, dtype=dtype), (model.njoints, 4, 4))
        return cls(
            oMi=identities,
            liMi=identities,
            ov=jnp.zeros((model.njoints, 6), dtype=dtype),
            J=jnp.zeros((6, model.nv), dtype=dtype),
            dJ=jnp.zeros((6, model.nv), dtype=dtype),
        )

    def check(self, model: Model) -> None:
        """Raise ``ValueError`` if the snapshot was not sized for ``model``."""
        expected = {
            "oMi": (model.njoints, 4, 4),
            "liMi": (model.njoints, 4, 4),
            "ov": (model.njoints, 6),
            "J": (6, model.nv),
            "dJ": (6, model.nv),
        }
        for field, shape in expected.items():
            actual = getattr(self, field).shape
            if actual != shape:
                logger.error("Data.%s has shape %s, model expects %s", field, actual, shape)
                raise ValueError(f"Data.{field} must have shape {shape}, got {actual}")
