import numpy as np
import pytest

from sdanets.core.activations import sigmoid
from sdanets.core.errors import ConfigurationError, ShapeMismatchError
from sdanets.core.gradients import ParameterGradients
from sdanets.core.layers import HiddenLayer, OutputLayer, initialize_weights
from sdanets.core.parallel import RowPool


def _hidden(weight, bias, pool=None):
    return HiddenLayer.from_parameters(
        np.asarray(weight, dtype=np.float64), np.asarray(bias, dtype=np.float64), pool
    )


def test_hidden_layer_compute_is_pure():
    layer = _hidden([[1.0, -1.0], [0.5, 2.0]], [0.1, -0.2])
    before = layer.weight.copy()
    x = np.array([0.3, 0.7])
    out = layer.compute(x)
    np.testing.assert_allclose(out, sigmoid(layer.weight @ x + layer.bias))
    np.testing.assert_array_equal(layer.weight, before)
    np.testing.assert_array_equal(layer.compute(x), out)


def test_output_layer_starts_uniform_and_predicts_first_max():
    layer = OutputLayer(3, 4)
    probs = layer.compute(np.array([0.2, 0.4, 0.6]))
    np.testing.assert_allclose(probs, 0.25)
    assert layer.predict(np.array([0.2, 0.4, 0.6])) == 0
    layer.bias[2] = 5.0
    assert layer.predict(np.array([0.2, 0.4, 0.6])) == 2


def test_shape_validation():
    layer = _hidden(np.ones((2, 3)), np.zeros(2))
    with pytest.raises(ShapeMismatchError):
        layer.compute(np.ones(2))
    with pytest.raises(ShapeMismatchError):
        _hidden(np.ones((2, 3)), np.zeros(3))
    with pytest.raises(ConfigurationError):
        OutputLayer(0, 2)
    with pytest.raises(ShapeMismatchError):
        layer.get_parameter_gradients(
            np.ones(3),
            np.ones(2),
            np.ones(2),
            0.1,
            ParameterGradients.for_online(np.ones((3, 3)), np.zeros(3)),
        )


def test_initialize_weights_range_and_determinism():
    n_in, n_out = 6, 4
    first = initialize_weights(np.random.default_rng(3), n_in, n_out)
    second = initialize_weights(np.random.default_rng(3), n_in, n_out)
    np.testing.assert_array_equal(first, second)
    assert first.shape == (n_out, n_in)
    assert np.all(np.abs(first) <= 4 * np.sqrt(6.0 / (n_in + n_out)))


def test_output_gradients_use_weights_from_before_the_update():
    weight = np.array([[0.5, -0.5, 1.0], [-1.0, 0.25, 0.0]])
    bias = np.array([0.1, -0.1])
    layer = OutputLayer.from_parameters(weight.copy(), bias.copy())
    x = np.array([1.0, 0.5, -0.5])
    y = layer.compute(x)
    target = np.array([0.0, 1.0])
    lr = 0.2

    grads = ParameterGradients.for_online(layer.weight, layer.bias)
    lower = layer.get_parameter_gradients(x, y, target, lr, grads)

    delta = y - target
    np.testing.assert_allclose(lower, weight.T @ delta)
    np.testing.assert_allclose(layer.weight, weight - lr * np.outer(delta, x))
    np.testing.assert_allclose(layer.bias, bias - lr * delta)


def test_hidden_delta_accepts_a_callable_signal():
    weight = np.array([[0.2, -0.4], [0.6, 0.1], [-0.3, 0.5]])
    bias = np.zeros(3)
    upper = np.array([0.3, -0.2, 0.1])
    x = np.array([0.9, 0.1])

    results = []
    for signal in (upper, lambda i: float(upper[i])):
        layer = _hidden(weight.copy(), bias.copy())
        out = layer.compute(x)
        grads = ParameterGradients.for_online(layer.weight, layer.bias)
        lower = layer.get_parameter_gradients(x, out, signal, 0.5, grads)
        results.append((lower, layer.weight.copy()))
        delta = upper * out * (1.0 - out)
        np.testing.assert_allclose(lower, weight.T @ delta)

    np.testing.assert_array_equal(results[0][0], results[1][0])
    np.testing.assert_array_equal(results[0][1], results[1][1])


def test_row_pool_matches_serial():
    rng = np.random.default_rng(11)
    weight = rng.standard_normal((7, 5))
    bias = rng.standard_normal(7)
    x = rng.random(5)
    upper = rng.standard_normal(7)

    serial = _hidden(weight.copy(), bias.copy())
    with RowPool(3, min_rows=1) as pool:
        assert len(pool.slices(7)) == 3
        parallel = _hidden(weight.copy(), bias.copy(), pool)
        np.testing.assert_allclose(parallel.compute(x), serial.compute(x))
        for layer in (serial, parallel):
            out = layer.compute(x)
            layer.get_parameter_gradients(
                x, out, upper, 0.1, ParameterGradients.for_online(layer.weight, layer.bias)
            )
    np.testing.assert_allclose(parallel.weight, serial.weight)
    np.testing.assert_allclose(parallel.bias, serial.bias)


def test_row_pool_slices_cover_rows():
    pool = RowPool(4, min_rows=2)
    try:
        slices = pool.slices(9)
        covered = [i for s in slices for i in range(9)[s]]
        assert covered == list(range(9))
    finally:
        pool.close()
    with pytest.raises(ValueError):
        RowPool(0)
