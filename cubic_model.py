#cubic_model.py
"""
The cubic model y = a * x^3 + b * x^2 + c * x + d, its mean squared error and the gradient of that error.

Everything is computed in double precision over the whole batch at once.
Gradients come in two flavours that must agree up to floating point tolerance:
    - analytic: closed form chain rule through the cubic
    - autograd: torch.autograd on Coefficients.forward()
"""

import torch
from collections.abc import Mapping
from cubic_coefficients import Coefficients, NAMES
from errors import InvalidArgument, DimensionMismatch

GRADIENT_METHODS = ('analytic', 'autograd')

def as_tensor(values, name: str = 'values') -> torch.Tensor:
    """Flatten a sequence, array or tensor of numbers into a 1-D float64 tensor."""
    try:
        tensor = torch.as_tensor(values, dtype=torch.float64)
    except (TypeError, ValueError, RuntimeError) as e:
        raise InvalidArgument(f"'{name}' must be a sequence of numbers: {e}")
    return tensor.reshape(-1)

def _coefficient_values(coeffs) -> tuple:
    if isinstance(coeffs, Coefficients):
        return tuple(param.detach() for param in coeffs.parameters())
    if isinstance(coeffs, Mapping):
        missing = [name for name in NAMES if name not in coeffs]
        if missing:
            raise InvalidArgument(f"Missing coefficients: {missing}")
        return tuple(float(coeffs[name]) for name in NAMES)
    raise TypeError(f"Expected Coefficients or a mapping with keys {NAMES}, got {type(coeffs)}.")

def predict(coeffs, xs) -> torch.Tensor:
    """
    Evaluate the cubic elementwise for a whole batch of x values.
    Pure: neither the coefficients nor xs are modified.
    """
    xs = as_tensor(xs, 'xs')
    a, b, c, d = _coefficient_values(coeffs)
    return a * xs.pow(3) + b * xs.square() + c * xs + d

def _check_aligned(predictions: torch.Tensor, targets: torch.Tensor, names=('predictions', 'targets')) -> None:
    if len(predictions) != len(targets):
        raise DimensionMismatch(f"'{names[0]}' has length {len(predictions)} but '{names[1]}' has length {len(targets)}.")
    if len(predictions) == 0:
        raise InvalidArgument(f"'{names[0]}' and '{names[1]}' must not be empty.")

def mse(predictions, targets) -> torch.Tensor:
    """Mean squared error as a 0-dim tensor. Keeps the autograd graph if there is one."""
    if isinstance(predictions, torch.Tensor):
        predictions = predictions.double().reshape(-1)
    else:
        predictions = as_tensor(predictions, 'predictions')
    targets = as_tensor(targets, 'targets')
    _check_aligned(predictions, targets)
    return (predictions - targets).square().mean()

def loss(predictions, targets) -> float:
    """mean((pred_i - target_i)^2)"""
    with torch.no_grad():
        return mse(predictions, targets).item()

@torch.no_grad
def gradients(coeffs, xs, ys) -> Coefficients:
    """
    Closed form gradient of the MSE with respect to a, b, c and d:
        d loss / d a = mean(2 * (pred - y) * x^3)
        d loss / d b = mean(2 * (pred - y) * x^2)
        d loss / d c = mean(2 * (pred - y) * x)
        d loss / d d = mean(2 * (pred - y))
    """
    return loss_and_gradients(coeffs, xs, ys, method='analytic')[1]

def autograd_gradients(coeffs: Coefficients, xs, ys) -> Coefficients:
    """Same gradient as gradients(), but obtained by backpropagating through Coefficients.forward()."""
    return loss_and_gradients(coeffs, xs, ys, method='autograd')[1]

def loss_and_gradients(coeffs, xs, ys, method: str = 'analytic') -> (float, Coefficients):
    """
    Loss at the current coefficients and its gradient, in a single pass over the batch.
    """
    if method not in GRADIENT_METHODS:
        raise InvalidArgument(f"Unknown gradient method '{method}', expected one of {GRADIENT_METHODS}.")
    xs = as_tensor(xs, 'xs')
    ys = as_tensor(ys, 'ys')
    _check_aligned(xs, ys, names=('xs', 'ys'))

    if method == 'autograd':
        if not isinstance(coeffs, Coefficients):
            coeffs = Coefficients(*(float(v) for v in _coefficient_values(coeffs)))
        with torch.enable_grad():
            error = mse(coeffs(xs), ys)
            grads = torch.autograd.grad(error, list(coeffs.parameters()))
        return error.item(), Coefficients(*(g.item() for g in grads))

    with torch.no_grad():
        residual = predict(coeffs, xs) - ys
        error = residual.square().mean().item()
        # powers of x for a, b, c, d
        grads = [(2 * residual * xs.pow(k)).mean().item() for k in (3, 2, 1, 0)]
    return error, Coefficients(*grads)
