# test_cubic_data.py
import pytest
import torch
from torch.utils.data import TensorDataset
from cubic_data import generate_data
from cubic_model import predict
from errors import InvalidArgument

TRUE_COEFFS = {'a': -.8, 'b': -.2, 'c': .9, 'd': .5}

@pytest.mark.parametrize('n', [1, 2, 100, 1000])
def test_size_and_domain(n):
    samples = generate_data(n, TRUE_COEFFS)
    assert isinstance(samples, TensorDataset)
    assert len(samples) == n

    xs, ys = samples.tensors
    assert xs.shape == ys.shape == (n,)
    assert torch.all(xs >= -1) and torch.all(xs <= 1), "x values fall outside [-1, 1]."

    x, y = samples[0]
    assert x.ndim == y.ndim == 0

def test_custom_domain():
    xs, _ = generate_data(500, TRUE_COEFFS, domain=(2., 3.)).tensors
    assert torch.all(xs >= 2) and torch.all(xs <= 3)

def test_noise_free_samples_lie_on_the_cubic():
    xs, ys = generate_data(100, TRUE_COEFFS, sigma=0).tensors
    assert torch.allclose(ys, predict(TRUE_COEFFS, xs))

def test_noise_is_small():
    xs, ys = generate_data(2000, TRUE_COEFFS, sigma=0.04).tensors
    residual = ys - predict(TRUE_COEFFS, xs)
    assert 0.02 < residual.std().item() < 0.06
    assert abs(residual.mean().item()) < 0.01

def test_seeded_generator_is_reproducible():
    A = generate_data(50, TRUE_COEFFS, generator=torch.Generator().manual_seed(3))
    B = generate_data(50, TRUE_COEFFS, generator=torch.Generator().manual_seed(3))
    C = generate_data(50, TRUE_COEFFS, generator=torch.Generator().manual_seed(4))
    assert all(torch.equal(a, b) for a, b in zip(A.tensors, B.tensors))
    assert not torch.equal(A.tensors[0], C.tensors[0])

def test_normalize():
    _, ys = generate_data(100, TRUE_COEFFS, normalize=True).tensors
    assert ys.min().item() == pytest.approx(0.)
    assert ys.max().item() == pytest.approx(1.)

    # a constant cubic cannot be rescaled and is left alone
    _, flat = generate_data(10, {'a': 0, 'b': 0, 'c': 0, 'd': 2.}, sigma=0, normalize=True).tensors
    assert torch.all(flat == 2.)

@pytest.mark.parametrize('n', [0, -5, 2.5, True, '10'])
def test_invalid_sample_count(n):
    with pytest.raises(InvalidArgument):
        generate_data(n, TRUE_COEFFS)

def test_invalid_arguments():
    with pytest.raises(InvalidArgument):
        generate_data(10, TRUE_COEFFS, sigma=-1.)
    with pytest.raises(InvalidArgument):
        generate_data(10, TRUE_COEFFS, domain=(1., -1.))
    with pytest.raises(InvalidArgument):
        generate_data(10, {'a': 1., 'b': 1.})
    with pytest.raises(InvalidArgument):
        generate_data(10, [1., 2., 3., 4.])
