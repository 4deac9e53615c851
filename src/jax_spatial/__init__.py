"""
JAX Spatial: rigid-body log maps and joint Jacobians for kinematic trees.

This library provides branchless, JIT-compilable implementations of the SO(3)
and SE(3) logarithm maps with their Jacobians, and of the assembly and
extraction of joint Jacobians over a kinematic tree, using JAX.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import math_utils
from . import transforms
from . import core
from . import chain
from . import jacobian
from .core import Data, JointModel, Model, ReferenceFrame
from .jacobian import (
    compute_joint_jacobian,
    compute_joint_jacobians,
    compute_joint_jacobians_time_variation,
    get_joint_jacobian,
    get_joint_jacobian_time_variation,
    joint_jacobian,
)

__version__ = "0.1.0"
__all__ = [
    "math_utils",
    "transforms",
    "core",
    "chain",
    "jacobian",
    "Data",
    "JointModel",
    "Model",
    "ReferenceFrame",
    "compute_joint_jacobian",
    "compute_joint_jacobians",
    "compute_joint_jacobians_time_variation",
    "get_joint_jacobian",
    "get_joint_jacobian_time_variation",
    "joint_jacobian",
]
