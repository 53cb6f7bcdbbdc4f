"""
test_layer.py
~~~~~~~~~~~~~

Unit tests for the layer base class: memoization, invalidation and the
forward/backward contract.
"""

import numpy as np
import pytest

from conftest import CountingValue, RecordingOptimizer
from clear_graph.activations import ReLU
from clear_graph.affine import Affine
from clear_graph.layer import Parameter, Value
from clear_graph.optimizers import SGD


def make_affine(x_layer):
    w = Parameter(np.array([[0.5, 0.2, 1.5], [-1.0, -0.5, 2.0]]), RecordingOptimizer(), name='w')
    b = Parameter(np.array([[1.0, 2.0, 1.0]]), RecordingOptimizer(), name='b')
    return Affine(x_layer, w, b, name='affine')


@pytest.fixture
def chain():
    leaf = CountingValue(np.array([[1.0, 2.0], [1.0, -2.0]]), name='input')
    return leaf, ReLU(make_affine(leaf), name='relu')


@pytest.mark.unit
class TestValue:

    def test_forward_returns_value(self):
        v = Value(np.array([[1.0, 2.0]]))
        np.testing.assert_array_equal(v.forward(), [[1.0, 2.0]])

    def test_set_value_shape_checked(self):
        v = Value(np.zeros((2, 3)))
        with pytest.raises(ValueError):
            v.set_value(np.zeros((3, 2)))

    def test_set_value_copies(self):
        v = Value(np.zeros((1, 2)))
        new = np.array([[3.0, 4.0]])
        v.set_value(new)
        new[0, 0] = 99.0
        np.testing.assert_array_equal(v.forward(), [[3.0, 4.0]])

    def test_set_lbl_is_noop(self):
        v = Value(np.ones((1, 2)))
        v.set_lbl(np.zeros((5, 5)))
        np.testing.assert_array_equal(v.forward(), np.ones((1, 2)))

    def test_backward_checks_shape(self):
        v = Value(np.ones((2, 2)))
        v.backward(np.ones((2, 2)))
        with pytest.raises(ValueError):
            v.backward(np.ones((2, 3)))


@pytest.mark.unit
class TestParameter:

    def test_backward_applies_optimizer_in_place(self):
        value = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        p = Parameter(value, SGD(learning_rate=0.1))
        stored = p.value
        p.backward(np.array([[1.0, 3.0, 5.0], [2.0, 4.0, 6.0]]))
        np.testing.assert_allclose(p.forward(), [[0.9, 1.7, 2.5], [3.8, 4.6, 5.4]])
        assert p.value is stored

    def test_backward_shape_mismatch(self):
        p = Parameter(np.ones((2, 2)), SGD())
        with pytest.raises(ValueError):
            p.backward(np.ones((1, 2)))


@pytest.mark.unit
class TestMemoization:

    def test_forward_is_memoized(self, chain):
        leaf, net = chain
        first = net.forward()
        second = net.forward()
        assert first is second
        assert leaf.forward_calls == 1

    def test_set_value_invalidates_path(self, chain):
        leaf, net = chain
        net.forward()
        assert net.is_cached and net.x.is_cached
        net.set_value(np.array([[0.0, 0.0], [0.0, 0.0]]))
        assert not net.is_cached
        assert not net.x.is_cached
        # b = [1, 2, 1] passes through the ReLU unchanged
        np.testing.assert_allclose(net.forward(), [[1.0, 2.0, 1.0], [1.0, 2.0, 1.0]])
        assert leaf.forward_calls == 2

    def test_set_lbl_invalidates_path(self, chain):
        leaf, net = chain
        net.forward()
        net.set_lbl(np.zeros((2, 3)))
        assert not net.is_cached
        net.forward()
        assert leaf.forward_calls == 2

    def test_mode_change_recomputes(self, chain):
        leaf, net = chain
        net.forward(is_training=False)
        net.forward(is_training=True)
        assert net.cache['is_training'] is True
        assert leaf.forward_calls == 2
        net.forward(is_training=True)
        assert leaf.forward_calls == 2

    def test_clean_all(self, chain):
        leaf, net = chain
        net.forward()
        net.clean_all()
        assert not net.is_cached and not net.x.is_cached


@pytest.mark.unit
class TestBackwardContract:

    def test_backward_before_forward(self, chain):
        _, net = chain
        with pytest.raises(RuntimeError, match="forward"):
            net.backward(np.ones((2, 3)))

    def test_backward_shape_mismatch(self, chain):
        _, net = chain
        net.forward()
        with pytest.raises(ValueError):
            net.backward(np.ones((3, 2)))

    def test_backward_clears_cache(self, chain):
        _, net = chain
        net.forward()
        net.backward(np.ones((2, 3)))
        assert not net.is_cached
        assert not net.x.is_cached


@pytest.mark.unit
class TestTraversal:

    def test_parameters(self, chain):
        _, net = chain
        assert [p.name for p in net.parameters()] == ['w', 'b']

    def test_walk_labels(self, chain):
        _, net = chain
        labels = [node.LAYER_LABEL for node in net.walk()]
        assert labels == ['relu', 'affine', 'direct_value', 'a_direct', 'a_direct']

    def test_regularization_loss_defaults_to_zero(self, chain):
        _, net = chain
        assert net.regularization_loss() == 0.0
