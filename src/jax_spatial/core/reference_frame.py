"""Reference frames in which joint Jacobians can be expressed."""

import enum


class ReferenceFrame(enum.Enum):
    """Basis and origin of the spatial vectors returned by the Jacobian algorithms.

    LOCAL: joint frame origin, joint frame axes.
    LOCAL_WORLD_ALIGNED: joint frame origin, world frame axes.
    WORLD: world frame origin, world frame axes.
    """
    LOCAL = "local"
    LOCAL_WORLD_ALIGNED = "local_world_aligned"
    WORLD = "world"
