import numpy as np
import pytest

from sdanets.core.errors import ConfigurationError, FrozenStackError, StackNotFinalizedError
from sdanets.core.stack import HiddenLayerCollection, StackedDenoisingAutoEncoder
from sdanets.core.types import Sample, make_uniform_source


def _two_class_samples(n=20, seed=0):
    rng = np.random.default_rng(seed)
    prototypes = {0: np.array([0.9, 0.9, 0.1, 0.1]), 1: np.array([0.1, 0.1, 0.9, 0.9])}
    return [
        Sample(i % 2, np.clip(prototypes[i % 2] + rng.uniform(-0.05, 0.05, 4), 0.0, 1.0))
        for i in range(n)
    ]


def _stack(seed=5, sizes=(4, 3, 2), workers=1):
    return StackedDenoisingAutoEncoder.from_layer_sizes(
        make_uniform_source(seed), sizes, workers=workers
    )


def _parameters(network):
    return [p.copy() for layer in network.layers for p in (layer.weight, layer.bias)]


def test_collection_append_and_replace():
    hidden = HiddenLayerCollection(np.random.default_rng(0), 6)
    hidden.set(0, 3)
    hidden.set(1, 4)
    assert [layer.n_out for layer in hidden] == [3, 4]
    hidden.set(0, 5)
    assert hidden[0].n_out == 5
    assert hidden[1].n_in == 5
    assert hidden.autoencoder(1).layers_before[0] is hidden[0]
    assert hidden.autoencoder(1).layer is hidden[1]
    assert hidden.compute(np.ones(6)).shape == (4,)
    assert hidden.compute(np.ones(6), stop_layer=1).shape == (5,)
    with pytest.raises(IndexError):
        hidden.set(3, 2)
    with pytest.raises(ConfigurationError):
        hidden.set(2, 0)


def test_finalised_stack_is_frozen():
    network = StackedDenoisingAutoEncoder(make_uniform_source(0), 4)
    network.add_hidden_layer(3)
    assert not network.finalized
    with pytest.raises(StackNotFinalizedError):
        network.fine_tune(_two_class_samples(), 0.1)
    network.set_output_layer(2)
    assert network.layer_sizes == [4, 3, 2]
    with pytest.raises(FrozenStackError):
        network.add_hidden_layer(2)
    with pytest.raises(FrozenStackError):
        network.set_output_layer(2)


def test_from_layer_sizes_needs_two_sizes():
    with pytest.raises(ConfigurationError):
        StackedDenoisingAutoEncoder.from_layer_sizes(make_uniform_source(0), [4])


def test_training_is_deterministic_for_a_seed():
    runs = []
    for _ in range(2):
        network = _stack()
        samples = _two_class_samples()
        network.pretrain(0, samples, epochs=2, learning_rate=0.1, noise=0.3)
        network.fine_tune(samples, 0.2)
        runs.append(_parameters(network))
    for first, second in zip(*runs):
        np.testing.assert_array_equal(first, second)


def test_online_matches_single_sample_batches_exactly():
    samples = _two_class_samples()
    online, batched = _stack(), _stack()
    for _ in range(3):
        online.fine_tune(samples, 0.3)
        batched.fine_tune(samples, 0.3, batch_size=1, accumulate=True)
    for first, second in zip(_parameters(online), _parameters(batched)):
        assert np.array_equal(first, second)


def _sigmoid(z):
    return 1.0 / (1.0 + np.exp(-z))


def _softmax(z):
    e = np.exp(z - z.max())
    return e / e.sum()


def test_mini_batch_averages_gradients_from_pre_batch_weights():
    samples = _two_class_samples(n=2)
    network = _stack()
    hidden, output = network.layers
    output.weight[...] = np.random.default_rng(2).uniform(-0.5, 0.5, output.weight.shape)
    w1, b1 = hidden.weight.copy(), hidden.bias.copy()
    w2, b2 = output.weight.copy(), output.bias.copy()
    rate = 0.3

    steps = [np.zeros_like(p) for p in (w1, b1, w2, b2)]
    for sample in samples:
        x = sample.image
        h = _sigmoid(w1 @ x + b1)
        y = _softmax(w2 @ h + b2)
        out_delta = y - np.eye(2)[sample.label]
        hidden_delta = (w2.T @ out_delta) * h * (1.0 - h)
        for step, update in zip(
            steps,
            (np.outer(hidden_delta, x), hidden_delta, np.outer(out_delta, h), out_delta),
        ):
            step -= rate * update

    cost = network.fine_tune(samples, rate, batch_size=2)
    assert cost > 0.0
    expected = [p + step / 2 for p, step in zip((w1, b1, w2, b2), steps)]
    actual = (hidden.weight, hidden.bias, output.weight, output.bias)
    for got, want in zip(actual, expected):
        np.testing.assert_allclose(got, want, rtol=1e-12, atol=1e-14)


def test_end_to_end_convergence():
    samples = _two_class_samples()
    network = _stack()
    for index in range(len(network.hidden_layers)):
        network.pretrain(index, samples, epochs=5, learning_rate=0.1, noise=0.1)
    first = network.fine_tune(samples, 0.5)
    for _ in range(49):
        last = network.fine_tune(samples, 0.5)
    assert last < first
    assert network.compute_error_rate(samples) == 0.0


def test_predict_range_and_errors():
    network = _stack(sizes=(4, 3, 3))
    for sample in _two_class_samples(n=5):
        assert 0 <= network.predict(sample.image) < 3
    with pytest.raises(ValueError):
        network.compute_error_rate([])
    with pytest.raises(ValueError):
        network.fine_tune([Sample(3, np.zeros(4))], 0.1)


def test_pretrain_reports_every_epoch():
    network = _stack()
    seen = []
    costs = network.pretrain(
        0,
        _two_class_samples(),
        epochs=3,
        learning_rate=0.1,
        noise=0.2,
        callback=lambda epoch, cost: seen.append((epoch, cost)),
    )
    assert [epoch for epoch, _ in seen] == [0, 1, 2]
    assert costs == [cost for _, cost in seen]
    assert network.pretraining_cost(0, _two_class_samples(), 0.0) > 0.0


def test_row_workers_match_serial_training():
    rng = np.random.default_rng(2)
    samples = [Sample(i % 3, rng.random(8)) for i in range(6)]
    sizes = (8, 130, 3)
    serial = _stack(sizes=sizes)
    with _stack(sizes=sizes, workers=2) as parallel:
        assert len(parallel.pool.slices(130)) == 2
        for network in (serial, parallel):
            network.pretrain(0, samples, epochs=1, learning_rate=0.05, noise=0.0)
            network.fine_tune(samples, 0.1)
        for first, second in zip(_parameters(serial), _parameters(parallel)):
            np.testing.assert_allclose(first, second, rtol=1e-9, atol=1e-12)
