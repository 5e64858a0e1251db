#cubic_data.py
"""
Synthetic training data for the curve fit: noisy samples of a known cubic.
"""

import torch
from torch.utils.data import TensorDataset
from collections.abc import Mapping
from cubic_coefficients import NAMES
from cubic_model import predict
from errors import InvalidArgument

def generate_data(
    n: int,
    true_coeffs: Mapping,
    sigma: float = 0.04,
    domain: (float, float) = (-1., 1.),
    normalize: bool = False,
    generator: torch.Generator = None,
) -> TensorDataset:
    """
    Draw n samples (x, y) with x uniform in `domain` and
        y = a * x^3 + b * x^2 + c * x + d + noise,  noise ~ Normal(0, sigma)

    Args:
        n (int): number of samples, must be positive.
        true_coeffs (Mapping): the ground truth {a, b, c, d}. Only read here, never by the trainer.
        sigma (float): standard deviation of the measurement noise. 0 gives noise-free data.
        domain (float, float): x is drawn from [low, high).
        normalize (bool): rescale y to [0, 1] by its min and max.
        generator (torch.Generator): seeded generator for reproducible data. Unseeded otherwise.

    Returns:
        TensorDataset: n (x, y) pairs in float64. `.tensors` gives (xs, ys).
    """
    if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
        raise InvalidArgument(f"'n' must be a positive integer, got {n!r}.")
    if not isinstance(true_coeffs, Mapping):
        raise InvalidArgument(f"'true_coeffs' must be a mapping with keys {NAMES}, got {type(true_coeffs)}.")
    if not sigma >= 0:
        raise InvalidArgument(f"'sigma' must be non-negative, got {sigma}.")
    low, high = domain
    if not low < high:
        raise InvalidArgument(f"'domain' must satisfy low < high, got {domain}.")

    xs = torch.rand(n, generator=generator, dtype=torch.float64) * (high - low) + low
    ys = predict(true_coeffs, xs)
    if sigma > 0:
        ys = ys + torch.randn(n, generator=generator, dtype=torch.float64) * sigma

    if normalize:
        y_min, y_max = ys.min(), ys.max()
        # a flat cloud cannot be rescaled
        if y_max > y_min:
            ys = (ys - y_min) / (y_max - y_min)

    return TensorDataset(xs, ys)
