"""Core data structures for JAX Spatial.

This module provides the kinematic tree, the per-query data snapshot and the
reference frame tags, all in a JAX-native, immutable format.
"""

from .data import Data
from .reference_frame import ReferenceFrame
from .robot_model import JointModel, Model, helical, prismatic, revolute, translation

__all__ = [
    "Data",
    "JointModel",
    "Model",
    "ReferenceFrame",
    "helical",
    "prismatic",
    "revolute",
    "translation",
]
