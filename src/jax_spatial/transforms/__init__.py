"""
JAX-based Lie group transforms for rigid-body kinematics.

This module provides branchless, JIT-compilable implementations of:
- SO(3) rotations and the log3 / Jlog3 maps (so3 module)
- SE(3) rigid body transforms and the log6 / Jlog6 maps (se3 module)

All functions are pure, stateless, and differentiable at the singular points.
"""

from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
