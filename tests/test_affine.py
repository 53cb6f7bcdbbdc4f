"""
test_affine.py
~~~~~~~~~~~~~~

Unit tests for the fully connected layer.
"""

import numpy as np
import pytest

from conftest import RecordingOptimizer
from clear_graph.affine import Affine
from clear_graph.common import numeric_gradient
from clear_graph.layer import Parameter, Value
from clear_graph.optimizers import SGD

X = np.array([[1.0, 2.0], [1.0, -2.0]])
W = np.array([[0.5, 0.2, 1.5], [-1.0, -0.5, 2.0]])
B = np.array([[1.0, 2.0, 1.0]])


def recording_affine(weight_decay=0.0):
    x = Parameter(X, RecordingOptimizer(), name='x')
    w = Parameter(W, RecordingOptimizer(), name='w')
    b = Parameter(B, RecordingOptimizer(), name='b')
    return Affine(x, w, b, weight_decay=weight_decay), x, w, b


@pytest.mark.unit
class TestAffineForward:

    def test_forward(self):
        layer = Affine(Value(X), Parameter(W, SGD()), Parameter(B, SGD()))
        np.testing.assert_allclose(layer.forward(), [[-0.5, 1.2, 6.5], [3.5, 3.2, -1.5]])

    def test_bias_shape_checked(self):
        with pytest.raises(ValueError):
            Affine(Value(X), Parameter(W, SGD()), Parameter(np.ones((1, 2)), SGD()))

    def test_input_width_checked(self):
        layer = Affine(Value(np.ones((2, 4))), Parameter(W, SGD()), Parameter(B, SGD()))
        with pytest.raises(ValueError):
            layer.forward()


@pytest.mark.unit
class TestAffineBackward:

    def test_gradients(self):
        layer, x, w, b = recording_affine()
        layer.forward()
        layer.backward(np.ones((2, 3)))
        np.testing.assert_allclose(x.optimizer.last, [[2.2, 0.5], [2.2, 0.5]])
        np.testing.assert_allclose(w.optimizer.last, [[2.0, 2.0, 2.0], [0.0, 0.0, 0.0]])
        # Bias gradient is the column mean over the batch
        np.testing.assert_allclose(b.optimizer.last, [[1.0, 1.0, 1.0]])

    def test_bias_gradient_is_batch_mean(self):
        layer, _, _, b = recording_affine()
        layer.forward()
        layer.backward(np.array([[1.0, 2.0, 3.0], [3.0, 6.0, 9.0]]))
        np.testing.assert_allclose(b.optimizer.last, [[2.0, 4.0, 6.0]])

    def test_gradients_use_pre_update_weights(self):
        x = Parameter(X, RecordingOptimizer())
        w = Parameter(W, SGD(learning_rate=1.0))
        b = Parameter(B, SGD(learning_rate=1.0))
        layer = Affine(x, w, b)
        layer.forward()
        layer.backward(np.ones((2, 3)))
        np.testing.assert_allclose(x.optimizer.last, [[2.2, 0.5], [2.2, 0.5]])
        np.testing.assert_allclose(w.value, W - np.array([[2.0, 2.0, 2.0], [0.0, 0.0, 0.0]]))

    def test_matches_numeric_gradient(self, rng):
        layer, x, w, _ = recording_affine()
        r = rng.standard_normal((2, 3))

        def loss():
            layer.clean_all()
            return float(np.sum(layer.forward() * r))

        expected_dx = numeric_gradient(loss, x.value)
        expected_dw = numeric_gradient(loss, w.value)
        layer.clean_all()
        layer.forward()
        layer.backward(r)
        np.testing.assert_allclose(x.optimizer.last, expected_dx, rtol=1e-5, atol=1e-7)
        np.testing.assert_allclose(w.optimizer.last, expected_dw, rtol=1e-5, atol=1e-7)


@pytest.mark.unit
class TestWeightDecay:

    def test_penalty(self):
        layer, _, _, _ = recording_affine(weight_decay=0.1)
        assert layer.regularization_loss() == pytest.approx(0.05 * np.sum(W ** 2))

    def test_gradient_includes_decay(self):
        layer, _, w, _ = recording_affine(weight_decay=0.1)
        layer.forward()
        layer.backward(np.ones((2, 3)))
        np.testing.assert_allclose(w.optimizer.last, np.array([[2.0, 2.0, 2.0], [0.0, 0.0, 0.0]]) + 0.1 * W)


@pytest.mark.unit
class TestAffineRandom:

    @pytest.mark.parametrize("init", ['he', 'xavier', 'uniform'])
    def test_shapes(self, init, rng):
        layer = Affine.random(Value(np.zeros((4, 5))), 5, 3, SGD(), weight_init=init, rng=rng)
        assert layer.w.value.shape == (5, 3)
        assert layer.b.value.shape == (1, 3)
        assert np.all(np.abs(layer.b.value) <= 0.01)
        assert layer.forward().shape == (4, 3)

    def test_uniform_range(self, rng):
        layer = Affine.random(Value(np.zeros((1, 50))), 50, 40, SGD(), weight_init='uniform', rng=rng)
        assert layer.w.value.min() >= -1.0 and layer.w.value.max() < 1.0

    def test_each_parameter_owns_an_optimizer(self, rng):
        opt = SGD(0.3)
        layer = Affine.random(Value(np.zeros((1, 2))), 2, 2, opt, rng=rng)
        assert layer.w.optimizer is not layer.b.optimizer
        assert layer.w.optimizer is not opt
        assert layer.w.optimizer.learning_rate == 0.3

    def test_unknown_init(self, rng):
        with pytest.raises(ValueError):
            Affine.random(Value(np.zeros((1, 2))), 2, 2, SGD(), weight_init='orthogonal', rng=rng)

    def test_seeded_init_is_reproducible(self):
        a = Affine.random(Value(np.zeros((1, 3))), 3, 2, SGD(), rng=np.random.default_rng(7))
        b = Affine.random(Value(np.zeros((1, 3))), 3, 2, SGD(), rng=np.random.default_rng(7))
        np.testing.assert_array_equal(a.w.value, b.w.value)
        np.testing.assert_array_equal(a.b.value, b.b.value)
