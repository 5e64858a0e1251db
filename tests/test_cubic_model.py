# test_cubic_model.py
import pytest
import torch
from cubic_coefficients import Coefficients
from cubic_model import predict, loss, mse, gradients, autograd_gradients, loss_and_gradients
from errors import DimensionMismatch, InvalidArgument

@pytest.fixture
def xs():
    return torch.linspace(-1, 1, 25, dtype=torch.float64)

@pytest.fixture
def ys(xs):
    return predict({'a': -.8, 'b': -.2, 'c': .9, 'd': .5}, xs) + 0.05 * torch.sin(7 * xs)

def test_predict_values():
    coeffs = {'a': 1., 'b': -1., 'c': 2., 'd': 3.}
    assert predict(coeffs, [0., 1., 2.]).tolist() == pytest.approx([3., 5., 11.])

def test_predict_accepts_coefficients_and_mappings(xs):
    coeffs = Coefficients(-.8, -.2, .9, .5)
    assert torch.allclose(predict(coeffs, xs), predict(coeffs.to_dict(), xs))

def test_predict_is_deterministic_and_pure(xs):
    coeffs = Coefficients(0.3, -0.1, 0.7, 0.2)
    before = coeffs.to_dict()
    xs_before = xs.clone()

    assert torch.equal(predict(coeffs, xs), predict(coeffs, xs)), "predict() is not deterministic."
    assert coeffs.to_dict() == before, "predict() modified the coefficients."
    assert torch.equal(xs, xs_before), "predict() modified xs."
    assert not predict(coeffs, xs).requires_grad

def test_predict_missing_coefficient():
    with pytest.raises(InvalidArgument):
        predict({'a': 1, 'b': 2, 'c': 3}, [1.])

def test_loss_is_zero_for_identical_sequences(ys):
    assert loss(ys, ys) == 0.
    assert loss([1., -2., 3.5], [1., -2., 3.5]) == 0.

def test_loss_value():
    assert loss([1., 2., 3.], [1., 2., 5.]) == pytest.approx(4. / 3)

def test_loss_dimension_mismatch():
    with pytest.raises(DimensionMismatch):
        loss([1, 2, 3], [1, 2])

def test_loss_empty():
    with pytest.raises(InvalidArgument):
        loss([], [])

def test_mse_keeps_graph():
    a = torch.tensor(2., dtype=torch.float64, requires_grad=True)
    error = mse(a * torch.ones(3, dtype=torch.float64), [1., 1., 1.])
    error.backward()
    assert a.grad.item() == pytest.approx(2.)

@pytest.mark.parametrize('point', [
    (0.1, 0.2, 0.3, 0.4),
    (-0.8, -0.2, 0.9, 0.5),
    (1.5, -2.0, 0.0, 3.0),
    (-0.3, 0.7, -1.1, 0.05),
])
def test_gradients_match_finite_differences(point, xs, ys):
    coeffs = Coefficients(*point)
    analytic = gradients(coeffs, xs, ys).to_dict()
    autograd = autograd_gradients(coeffs, xs, ys).to_dict()

    epsilon = 1e-6
    for name in 'abcd':
        plus, minus = coeffs.to_dict(), coeffs.to_dict()
        plus[name] += epsilon
        minus[name] -= epsilon
        numeric = (loss(predict(plus, xs), ys) - loss(predict(minus, xs), ys)) / (2 * epsilon)

        assert pytest.approx(numeric, abs=1e-3) == analytic[name], f"Analytic gradient of '{name}' is off."
        assert pytest.approx(numeric, abs=1e-3) == autograd[name], f"Autograd gradient of '{name}' is off."
        assert pytest.approx(analytic[name], abs=1e-10) == autograd[name]

def test_loss_and_gradients(xs, ys):
    coeffs = Coefficients(0.1, 0.2, 0.3, 0.4)
    for method in ('analytic', 'autograd'):
        error, grads = loss_and_gradients(coeffs, xs, ys, method=method)
        assert error == pytest.approx(loss(predict(coeffs, xs), ys))
        assert isinstance(grads, Coefficients)

    # autograd leaves no gradients behind on the live coefficients
    assert all(param.grad is None for param in coeffs.parameters())

    with pytest.raises(InvalidArgument):
        loss_and_gradients(coeffs, xs, ys, method='finite')
    with pytest.raises(DimensionMismatch):
        loss_and_gradients(coeffs, xs, ys[:-1])

def test_autograd_rejects_incomplete_mapping(xs, ys):
    for method in ('analytic', 'autograd'):
        with pytest.raises(InvalidArgument):
            loss_and_gradients({'a': 1, 'b': 2, 'c': 3}, xs, ys, method=method)
    with pytest.raises(InvalidArgument):
        autograd_gradients({'a': 1, 'b': 2, 'c': 3}, xs, ys)
    error, _ = loss_and_gradients({'a': 0.1, 'b': 0.2, 'c': 0.3, 'd': 0.4}, xs, ys, method='autograd')
    assert error == pytest.approx(loss(predict(Coefficients(0.1, 0.2, 0.3, 0.4), xs), ys))
