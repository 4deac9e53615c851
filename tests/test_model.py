"""Tests for the kinematic tree and data snapshot structures."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jax_spatial.core import Data, JointModel, Model, helical, prismatic, revolute, translation
from jax_spatial.transforms import se3


def test_empty_model():
    model = Model.empty()

    assert model.njoints == 1
    assert model.nq == 0
    assert model.nv == 0
    assert model.names == ("universe",)
    assert model.parents == (0,)
    assert model.supports == ((),)
    assert model.support_mask.shape == (1, 0)


def test_add_joint_indices(model):
    """Coordinates are allocated contiguously in insertion order."""
    assert model.njoints == 6
    assert model.names == ("universe", "shoulder", "elbow", "slider", "screw", "branch")
    assert model.parents == (0, 0, 1, 2, 3, 1)
    assert model.idx_qs == (0, 0, 1, 2, 3, 4)
    assert model.nqs == (0, 1, 1, 1, 1, 3)
    assert model.idx_vs == model.idx_qs
    assert model.nvs == model.nqs
    assert model.nq == model.nv == 7
    assert model.joint_placements.shape == (6, 4, 4)


def test_add_joint_returns_new_model():
    model = Model.empty()
    extended, joint_id = model.add_joint(0, revolute())

    assert joint_id == 1
    assert model.njoints == 1
    assert extended.njoints == 2
    assert extended.names[1] == "joint_1"
    np.testing.assert_allclose(extended.joint_placements[1], jnp.eye(4))


def test_supports_and_mask(model):
    assert model.supports == ((), (1,), (1, 2), (1, 2, 3), (1, 2, 3, 4), (1, 5))

    mask = np.asarray(model.support_mask)
    expected = np.array([
        [0, 0, 0, 0, 0, 0, 0],
        [1, 0, 0, 0, 0, 0, 0],
        [1, 1, 0, 0, 0, 0, 0],
        [1, 1, 1, 0, 0, 0, 0],
        [1, 1, 1, 1, 0, 0, 0],
        [1, 0, 0, 0, 1, 1, 1],
    ], dtype=bool)
    np.testing.assert_array_equal(mask, expected)


def test_get_joint_id(model):
    assert model.get_joint_id("universe") == 0
    assert model.get_joint_id("screw") == 4

    with pytest.raises(ValueError, match="Joint 'wrist' not found in model"):
        model.get_joint_id("wrist")


def test_check_joint_id(model):
    model.check_joint_id(0)
    model.check_joint_id(np.int64(5))

    with pytest.raises(ValueError, match="out of range"):
        model.check_joint_id(6)
    with pytest.raises(ValueError, match="out of range"):
        model.check_joint_id(-1)

    model.check_joint_id(jnp.array(3))
    with pytest.raises(ValueError, match="out of range"):
        model.check_joint_id(jnp.array(-1))
    with pytest.raises(ValueError, match="out of range"):
        model.check_joint_id(np.array(9))
    with pytest.raises(ValueError, match="integer scalar"):
        model.check_joint_id(jnp.array([1, 2]))


def test_add_joint_rejects_invalid_input():
    model = Model.empty()

    with pytest.raises(ValueError, match="Parent id"):
        model.add_joint(1, revolute())
    with pytest.raises(ValueError, match="motion subspace"):
        model.add_joint(0, JointModel(jnp.zeros((3, 1))))
    with pytest.raises(ValueError, match="placement"):
        model.add_joint(0, revolute(), jnp.eye(3))

    model, _ = model.add_joint(0, revolute(), name="hip")
    with pytest.raises(ValueError, match="already exists"):
        model.add_joint(0, prismatic(), name="hip")


def test_joint_factories():
    np.testing.assert_array_equal(revolute("x").subspace[:, 0], jnp.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0]))
    np.testing.assert_array_equal(prismatic("y").subspace[:, 0], jnp.array([0.0, 1.0, 0.0, 0.0, 0.0, 0.0]))
    np.testing.assert_allclose(
        helical("z", pitch=0.2).subspace[:, 0], jnp.array([0.0, 0.0, 0.2, 0.0, 0.0, 1.0])
    )

    S = translation().subspace
    assert S.shape == (6, 3)
    np.testing.assert_array_equal(S[:3], jnp.eye(3))
    np.testing.assert_array_equal(S[3:], jnp.zeros((3, 3)))

    # Arbitrary axes are normalised
    a = revolute([0.0, 3.0, 4.0]).subspace[3:, 0]
    np.testing.assert_allclose(a, jnp.array([0.0, 0.6, 0.8]))

    assert revolute().kind == "revolute"
    assert translation().nq == translation().nv == 3


@pytest.mark.parametrize("axis", ["w", [0.0, 0.0, 0.0], [1.0, 0.0]])
def test_joint_factories_reject_bad_axis(axis):
    with pytest.raises(ValueError):
        revolute(axis)


def test_joint_transform():
    joint = helical("y", pitch=0.1)
    T = joint.transform(jnp.array([0.5]))
    np.testing.assert_allclose(T, se3.exp(jnp.array([0.0, 0.05, 0.0, 0.0, 0.5, 0.0])), atol=1e-14)
    np.testing.assert_allclose(se3.get_position(T), jnp.array([0.0, 0.05, 0.0]), atol=1e-14)


def test_model_is_pytree(model):
    """Topology is static, placements and subspaces are leaves."""
    flat, tree_def = jax.tree_util.tree_flatten(model)
    rebuilt = jax.tree_util.tree_unflatten(tree_def, flat)

    assert rebuilt.names == model.names
    assert rebuilt.parents == model.parents
    assert len(flat) == model.njoints + 1
    np.testing.assert_array_equal(rebuilt.joint_placements, model.joint_placements)


def test_model_jit_compatibility(model):
    @jax.jit
    def first_placement(m):
        return m.joint_placements[1] @ m.joints[1].transform(jnp.array([0.2]))

    expected = model.joint_placements[1] @ revolute("z").transform(jnp.array([0.2]))
    np.testing.assert_allclose(first_placement(model), expected, atol=1e-14)


def test_data_from_model(model):
    data = Data.from_model(model)

    assert data.oMi.shape == (6, 4, 4)
    assert data.liMi.shape == (6, 4, 4)
    assert data.ov.shape == (6, 6)
    assert data.J.shape == (6, 7)
    assert data.dJ.shape == (6, 7)
    np.testing.assert_array_equal(data.oMi, jnp.broadcast_to(jnp.eye(4), (6, 4, 4)))
    np.testing.assert_array_equal(data.J, jnp.zeros((6, 7)))
    assert data.J.dtype == jnp.float64

    assert Data.from_model(model, dtype=jnp.float32).J.dtype == jnp.float32
    data.check(model)


def test_data_check_rejects_mismatch(model):
    data = Data.from_model(model)

    with pytest.raises(ValueError, match=r"Data.ov must have shape \(6, 6\)"):
        data.replace(ov=jnp.zeros((5, 6))).check(model)
    with pytest.raises(ValueError, match="Data.dJ"):
        data.replace(dJ=jnp.zeros((6, 3))).check(model)
