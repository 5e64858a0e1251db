#linear_model.py
"""
A one-unit dense regressor fitted to four points on the line y = 2x - 1, then queried with a single value.
"""

import math
import torch
import torch.nn as nn
import torch.nn.functional as F
from errors import InvalidArgument, DimensionMismatch

TRAINING_XS = [[1.], [2.], [3.], [4.]]
TRAINING_YS = [[1.], [3.], [5.], [7.]]

def build_model() -> nn.Module:
    """One input, one output: y = weight * x + bias."""
    return nn.Linear(1, 1)

def _as_column(values, name: str) -> torch.Tensor:
    try:
        tensor = torch.as_tensor(values, dtype=torch.float32)
    except (TypeError, ValueError, RuntimeError) as e:
        raise InvalidArgument(f"'{name}' must be a sequence of numbers: {e}")
    return tensor.reshape(-1, 1)

def fit(model: nn.Module, xs=TRAINING_XS, ys=TRAINING_YS, epochs: int = 100, learning_rate: float = 0.01, log=None) -> [float]:
    """
    Full batch SGD on the mean squared error, one step per epoch.

    Returns:
        [float]: the loss before each epoch's update.
    """
    xs = _as_column(xs, 'xs')
    ys = _as_column(ys, 'ys')
    if len(xs) != len(ys):
        raise DimensionMismatch(f"'xs' has length {len(xs)} but 'ys' has length {len(ys)}.")
    if len(xs) == 0:
        raise InvalidArgument("Cannot fit on an empty sample set.")
    if isinstance(epochs, bool) or not isinstance(epochs, int) or epochs < 0:
        raise InvalidArgument(f"'epochs' must be a non-negative integer, got {epochs!r}.")
    if isinstance(learning_rate, bool) or not isinstance(learning_rate, (int, float)) \
            or not math.isfinite(learning_rate) or learning_rate < 0:
        raise InvalidArgument(f"'learning_rate' must be a finite non-negative number, got {learning_rate!r}.")

    optimizer = torch.optim.SGD(model.parameters(), lr=learning_rate)
    losses = []
    model.train()
    for epoch in range(epochs):
        optimizer.zero_grad()
        loss = F.mse_loss(model(xs), ys)
        loss.backward()
        optimizer.step()
        losses.append(loss.item())
        if log is not None:
            log(epoch, loss.item())
    return losses

@torch.no_grad
def infer(model: nn.Module, x: float) -> float:
    """Run the fitted model on a single number."""
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        raise InvalidArgument(f"Expected a number to run the model on, got {type(x)}.")
    model.eval()
    return model(torch.tensor([[float(x)]])).item()
