"""
test_batch_norm.py
~~~~~~~~~~~~~~~~~~

Unit tests for batch normalization.
"""

import numpy as np
import pytest

from conftest import RecordingOptimizer
from clear_graph.batch_norm import BatchNorm
from clear_graph.common import numeric_gradient
from clear_graph.layer import Parameter, Value
from clear_graph.optimizers import SGD


def recording_batch_norm(x_value, gamma, beta):
    x = Parameter(x_value, RecordingOptimizer(), name='x')
    g = Parameter(gamma, RecordingOptimizer(), name='gamma')
    b = Parameter(beta, RecordingOptimizer(), name='beta')
    return BatchNorm(x, g, b), x, g, b


@pytest.mark.unit
class TestBatchNormForward:

    def test_normalizes_columns(self, rng):
        x = rng.normal(5.0, 3.0, (64, 4))
        layer = BatchNorm.create(Value(x), 4, SGD())
        y = layer.forward()
        np.testing.assert_allclose(y.mean(axis=0), np.zeros(4), atol=1e-10)
        np.testing.assert_allclose(y.std(axis=0), np.ones(4), atol=1e-4)

    def test_scale_and_shift(self):
        x = np.array([[1.0, 10.0], [3.0, 30.0]])
        layer, _, _, _ = recording_batch_norm(x, np.array([[2.0, 1.0]]), np.array([[0.5, -1.0]]))
        # normalized = [[-1, -1], [1, 1]] up to epsilon
        np.testing.assert_allclose(layer.forward(), [[-1.5, -2.0], [2.5, 0.0]], atol=1e-5)

    def test_feature_count_checked(self):
        layer = BatchNorm.create(Value(np.zeros((2, 3))), 4, SGD())
        with pytest.raises(ValueError):
            layer.forward()

    def test_parameter_shapes_checked(self):
        with pytest.raises(ValueError):
            BatchNorm(Value(np.zeros((2, 3))), Parameter(np.ones((1, 3)), SGD()),
                      Parameter(np.zeros((1, 2)), SGD()))


@pytest.mark.unit
class TestBatchNormBackward:

    def test_parameter_gradients(self):
        x = np.array([[1.0, 10.0], [3.0, 30.0]])
        layer, _, g, b = recording_batch_norm(x, np.ones((1, 2)), np.zeros((1, 2)))
        layer.forward()
        dout = np.array([[1.0, 2.0], [3.0, 4.0]])
        layer.backward(dout)
        np.testing.assert_allclose(b.optimizer.last, [[4.0, 6.0]])
        np.testing.assert_allclose(g.optimizer.last, [[2.0, 2.0]], atol=1e-5)

    def test_matches_numeric_gradient(self, rng):
        layer, x, g, b = recording_batch_norm(
            rng.standard_normal((6, 3)), rng.uniform(0.5, 1.5, (1, 3)), rng.standard_normal((1, 3))
        )
        r = rng.standard_normal((6, 3))

        def loss():
            layer.clean_all()
            return float(np.sum(layer.forward() * r))

        expected = {name: numeric_gradient(loss, p.value) for name, p in
                    (('x', x), ('gamma', g), ('beta', b))}
        layer.clean_all()
        layer.forward()
        layer.backward(r)
        np.testing.assert_allclose(x.optimizer.last, expected['x'], rtol=1e-4, atol=1e-6)
        np.testing.assert_allclose(g.optimizer.last, expected['gamma'], rtol=1e-4, atol=1e-6)
        np.testing.assert_allclose(b.optimizer.last, expected['beta'], rtol=1e-4, atol=1e-6)

    def test_constant_column(self):
        x = np.array([[3.0, 1.0], [3.0, 2.0], [3.0, 5.0]])
        layer, xp, _, _ = recording_batch_norm(x, np.ones((1, 2)), np.zeros((1, 2)))
        y = layer.forward()
        assert np.all(np.isfinite(y))
        np.testing.assert_array_equal(y[:, 0], np.zeros(3))
        # A uniform shift of a constant column leaves the output unchanged
        layer.backward(np.array([[1.0, 2.0], [1.0, 4.0], [1.0, 6.0]]))
        dx = xp.optimizer.last
        assert np.all(np.isfinite(dx))
        np.testing.assert_allclose(dx[:, 0], np.zeros(3), atol=1e-9)

    def test_input_gradient_sums_to_zero(self, rng):
        layer, x, _, _ = recording_batch_norm(rng.standard_normal((8, 2)), np.ones((1, 2)), np.zeros((1, 2)))
        layer.forward()
        layer.backward(rng.standard_normal((8, 2)))
        np.testing.assert_allclose(x.optimizer.last.sum(axis=0), np.zeros(2), atol=1e-10)
