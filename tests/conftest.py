"""Shared kinematic trees and configurations."""

import jax.numpy as jnp
import pytest

from jax_spatial.core import Model, helical, prismatic, revolute, translation
from jax_spatial.transforms import se3


@pytest.fixture(scope="session")
def model():
    """Arm with a screw at the tip and a translating branch off the shoulder.

    Joint ids: shoulder 1, elbow 2, slider 3, screw 4, branch 5 (3 DOF).
    """
    model = Model.empty()
    model, shoulder = model.add_joint(
        0, revolute("z"), se3.from_position_and_rotation(jnp.array([0.0, 0.0, 0.3]), jnp.eye(3)), name="shoulder"
    )
    model, elbow = model.add_joint(
        shoulder, revolute("y"), se3.exp(jnp.array([0.0, 0.1, 0.4, 0.2, 0.0, 0.1])), name="elbow"
    )
    model, slider = model.add_joint(
        elbow, prismatic([1.0, 1.0, 0.0]), se3.exp(jnp.array([0.3, 0.0, 0.0, 0.0, -0.3, 0.0])), name="slider"
    )
    model, _ = model.add_joint(
        slider, helical("x", pitch=0.05), se3.exp(jnp.array([0.0, 0.0, 0.2, 0.1, 0.1, 0.1])), name="screw"
    )
    model, _ = model.add_joint(
        shoulder, translation(), se3.exp(jnp.array([-0.1, 0.2, 0.0, 0.0, 0.0, 0.7])), name="branch"
    )
    return model


@pytest.fixture(scope="session")
def q():
    return jnp.array([0.3, -0.7, 0.25, 1.1, 0.1, -0.2, 0.05])


@pytest.fixture(scope="session")
def v():
    return jnp.array([0.5, -0.4, 0.3, 0.8, -0.2, 0.6, 0.1])
