"""Model PyTree data structure for JAX-native kinematic trees.

This module defines the kinematic tree consumed by the Jacobian algorithms:
joints with constant local motion subspaces, their parents and their static
placements. Topology (names, parents, coordinate ranges) is kept in static
fields so that algorithms unroll over joints at trace time.
"""

from logging import getLogger

import jax
import jax.numpy as jnp
import numpy as np
from flax import struct
from typing import Optional, Sequence, Tuple, Union

from ..transforms import se3

Array = jax.Array

logger = getLogger(__name__)

_AXES = {
    "x": (1.0, 0.0, 0.0),
    "y": (0.0, 1.0, 0.0),
    "z": (0.0, 0.0, 1.0),
}


@struct.dataclass
class JointModel:
    """Joint whose motion is ``exp(S q)`` for a constant local subspace ``S``.

    Attributes:
        subspace: Array of shape (6, nv) mapping joint velocities to a twist
                  expressed in the joint frame, linear part first.
        kind: Label of the joint type, static for JIT compilation.
    """
    subspace: Array
    kind: str = struct.field(pytree_node=False, default="screw")

    @property
    def nv(self) -> int:
        return self.subspace.shape[1]

    @property
    def nq(self) -> int:
        return self.subspace.shape[1]

    def motion_subspace(self) -> Array:
        return self.subspace

    def transform(self, q: Array) -> Array:
        """Placement of the joint child frame relative to the joint parent frame."""
        return se3.exp(self.subspace @ q)


def _axis_vector(axis: Union[str, Sequence[float]]) -> np.ndarray:
    if isinstance(axis, str):
        try:
            return np.array(_AXES[axis.lower()])
        except KeyError:
            raise ValueError(f"Unknown axis '{axis}', expected one of 'x', 'y', 'z'")
    axis = np.asarray(axis, dtype=float)
    norm = np.linalg.norm(axis)
    if axis.shape != (3,) or norm == 0.0:
        raise ValueError(f"Joint axis must be a non-zero 3-vector, got {axis}")
    return axis / norm


def revolute(axis: Union[str, Sequence[float]] = "z") -> JointModel:
    """Rotation about ``axis`` through the joint origin."""
    a = _axis_vector(axis)
    return JointModel(jnp.asarray(np.concatenate([np.zeros(3), a])[:, None]), kind="revolute")


def prismatic(axis: Union[str, Sequence[float]] = "z") -> JointModel:
    """Translation along ``axis``."""
    a = _axis_vector(axis)
    return JointModel(jnp.asarray(np.concatenate([a, np.zeros(3)])[:, None]), kind="prismatic")


def helical(axis: Union[str, Sequence[float]] = "z", pitch: float = 0.0) -> JointModel:
    """Rotation about ``axis`` coupled with a translation of ``pitch`` per radian."""
    a = _axis_vector(axis)
    return JointModel(jnp.asarray(np.concatenate([pitch * a, a])[:, None]), kind="helical")


def translation() -> JointModel:
    """Free translation, three coordinates along the joint frame axes."""
    S = np.zeros((6, 3))
    S[:3, :3] = np.eye(3)
    return JointModel(jnp.asarray(S), kind="translation")


@struct.dataclass
class Model:
    """Immutable PyTree representation of a kinematic tree.

    Joint 0 is the universe. Every other joint ``i`` has a parent with a
    smaller index, a placement relative to that parent's frame and a
    contiguous range of configuration and velocity coordinates.

    Attributes:
        names: Joint names, index corresponds to joint id.
        parents: Parent joint id of each joint. The universe parents itself.
        idx_qs: First configuration coordinate of each joint.
        nqs: Number of configuration coordinates of each joint.
        idx_vs: First velocity coordinate of each joint.
        nvs: Number of velocity coordinates of each joint.
        joints: Joint models, one per joint.
        joint_placements: Array of shape (njoints, 4, 4) with the placement of
                          each joint frame relative to its parent joint frame.
    """
    names: Tuple[str, ...] = struct.field(pytree_node=False)
    parents: Tuple[int, ...] = struct.field(pytree_node=False)
    idx_qs: Tuple[int, ...] = struct.field(pytree_node=False)
    nqs: Tuple[int, ...] = struct.field(pytree_node=False)
    idx_vs: Tuple[int, ...] = struct.field(pytree_node=False)
    nvs: Tuple[int, ...] = struct.field(pytree_node=False)
    joints: Tuple[JointModel, ...]
    joint_placements: Array

    @classmethod
    def empty(cls) -> "Model":
        """Model holding only the universe joint."""
        return cls(
            names=("universe",),
            parents=(0,),
            idx_qs=(0,),
            nqs=(0,),
            idx_vs=(0,),
            nvs=(0,),
            joints=(JointModel(jnp.zeros((6, 0)), kind="universe"),),
            joint_placements=se3.identity()[None],
        )

    @property
    def njoints(self) -> int:
        return len(self.names)

    @property
    def nq(self) -> int:
        return sum(self.nqs)

    @property
    def nv(self) -> int:
        return sum(self.nvs)

    @property
    def supports(self) -> Tuple[Tuple[int, ...], ...]:
        """Ancestor chain of each joint, from the first moving joint down to itself."""
        chains = [()]
        for i in range(1, self.njoints):
            chains.append(chains[self.parents[i]] + (i,))
        return tuple(chains)

    @property
    def support_mask(self) -> Array:
        """Boolean array (njoints, nv), True on the columns of each joint's ancestors."""
        mask = np.zeros((self.njoints, self.nv), dtype=bool)
        for i, chain in enumerate(self.supports):
            for j in chain:
                mask[i, self.idx_vs[j]:self.idx_vs[j] + self.nvs[j]] = True
        return jnp.asarray(mask)

    def add_joint(
        self,
        parent_id: int,
        joint: JointModel,
        placement: Optional[Array] = None,
        name: Optional[str] = None,
    ) -> Tuple["Model", int]:
        """Append a joint to the tree.

        Args:
            parent_id: Id of an existing joint.
            joint: Joint model of the new joint.
            placement: (4, 4) placement relative to the parent joint frame.
                       Defaults to the identity.
            name: Unique joint name. Defaults to ``joint_<id>``.

        Returns:
            The extended model and the id of the new joint.
        """
        joint_id = self.njoints
        if not 0 <= parent_id < joint_id:
            logger.error("Parent id %d is not an existing joint", parent_id)
            raise ValueError(f"Parent id {parent_id} out of range [0, {joint_id})")
        if joint.subspace.ndim != 2 or joint.subspace.shape[0] != 6:
            raise ValueError(f"Joint motion subspace must have shape (6, nv), got {joint.subspace.shape}")

        placement = se3.identity() if placement is None else jnp.asarray(placement)
        if placement.shape != (4, 4):
            raise ValueError(f"Joint placement must have shape (4, 4), got {placement.shape}")

        name = f"joint_{joint_id}" if name is None else name
        if name in self.names:
            raise ValueError(f"Joint '{name}' already exists in model")

        logger.debug(
            "Adding %s joint '%s' (id %d, parent %d, nv %d)",
            joint.kind, name, joint_id, parent_id, joint.nv,
        )
        model = self.replace(
            names=self.names + (name,),
            parents=self.parents + (parent_id,),
            idx_qs=self.idx_qs + (self.nq,),
            nqs=self.nqs + (joint.nq,),
            idx_vs=self.idx_vs + (self.nv,),
            nvs=self.nvs + (joint.nv,),
            joints=self.joints + (joint,),
            joint_placements=jnp.concatenate(
                [self.joint_placements, placement[None].astype(self.joint_placements.dtype)], axis=0
            ),
        )
        return model, joint_id

    def get_joint_id(self, name: str) -> int:
        try:
            return self.names.index(name)
        except ValueError:
            raise ValueError(f"Joint '{name}' not found in model")

    def check_joint_id(self, joint_id) -> None:
        """Raise ``ValueError`` for a concrete joint id outside the tree.

        Traced ids cannot be inspected and are accepted as is. Concrete
        arrays are checked like ints, since indexing would otherwise wrap
        or clamp them onto another joint.
        """
        if isinstance(joint_id, jax.core.Tracer):
            return
        if isinstance(joint_id, (jax.Array, np.ndarray)):
            if joint_id.ndim != 0 or not jnp.issubdtype(joint_id.dtype, jnp.integer):
                raise ValueError(f"Joint id must be an integer scalar, got {joint_id!r}")
            joint_id = int(joint_id)
        if isinstance(joint_id, (int, np.integer)) and not 0 <= joint_id < self.njoints:
            logger.error("Joint id %d out of range for a model with %d joints", joint_id, self.njoints)
            raise ValueError(f"Joint id {joint_id} out of range [0, {self.njoints})")
