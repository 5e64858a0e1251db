#cubic_coefficients.py
import torch
import torch.nn as nn
from copy import deepcopy
from collections.abc import Mapping

NAMES = ('a', 'b', 'c', 'd')

class Coefficients(nn.Module):
    """
    The four learnable coefficients of the cubic y = a * x^3 + b * x^2 + c * x + d.
    Each coefficient is a float64 scalar nn.Parameter, so torch autograd can differentiate through forward().
    Supports the arithmetic of a gradient descent update: subtract and scale.
    Watch out:
        - In-place operations mutate the live coefficients. Only the Trainer that owns them should call them.
        - There is no gradient tracking in the vector operations.
        - Use equal() instead of == or != if you want to see if the coefficients are the same.
    """

    def __init__(self, a: float = None, b: float = None, c: float = None, d: float = None, generator: torch.Generator = None) -> None:
        super(Coefficients, self).__init__()
        for name, value in zip(NAMES, (a, b, c, d)):
            if value is None:
                # same initialisation as the demo: uniform in [0, 1)
                value = torch.rand((), generator=generator, dtype=torch.float64).item()
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"Coefficient '{name}' is of type {type(value)}, expected int or float.")
            self.register_parameter(name, nn.Parameter(torch.tensor(float(value), dtype=torch.float64)))

    @classmethod
    def from_dict(cls, values: Mapping) -> 'Coefficients':
        """Build coefficients from a mapping with the keys a, b, c and d."""
        if not isinstance(values, Mapping):
            raise TypeError(f"Expected a mapping with keys {NAMES}, got {type(values)}.")
        missing = [name for name in NAMES if name not in values]
        if missing:
            raise KeyError(f"Missing coefficients: {missing}")
        return cls(*(float(values[name]) for name in NAMES))

    @classmethod
    def random(cls, generator: torch.Generator = None) -> 'Coefficients':
        return cls(generator=generator)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.a * x.pow(3) + self.b * x.square() + self.c * x + self.d

    def to_dict(self) -> dict:
        """Snapshot of the current values as plain floats."""
        return {name: param.item() for name, param in self.named_parameters()}

    def extra_repr(self) -> str:
        return ', '.join(f'{name}={value:.4f}' for name, value in self.to_dict().items())

    def _ensure_compatible(self, other: 'Coefficients') -> None:
        if not isinstance(other, self.__class__):
            raise TypeError(f"Compatibility error: 'other' {other} is of type {type(other)}, expected {type(self)}.")

    def _clone(self) -> 'Coefficients':
        return deepcopy(self)

    def __isub__(self, other: 'Coefficients') -> 'Coefficients':
        """
        In-place subtraction. The trainer's update step, coeffs -= gradients * learning_rate, lands here.
        """
        self._ensure_compatible(other)
        for param, other_param in zip(self.parameters(), other.parameters()):
            param.data.sub_(other_param.data)
        return self

    def __imul__(self, scalar: (int, float)) -> 'Coefficients':
        if isinstance(scalar, bool) or not isinstance(scalar, (int, float)):
            raise TypeError(f"Multiplication error: 'scalar' is of type {type(scalar)}, expected int or float.")
        for param in self.parameters():
            param.data.mul_(scalar)
        return self

    def equal(self, other: 'Coefficients', tol=1e-8) -> bool:
        """
        Compares these coefficients with another set, within a tolerance.
        Not overloading __eq__ because that opens a can of worms with inheritance of __hash__.
        """
        self._ensure_compatible(other)
        for param, other_param in zip(self.parameters(), other.parameters()):
            if not torch.allclose(param.data, other_param.data, atol=tol, rtol=0):
                return False
        return True

    def __sub__(self, other: 'Coefficients') -> 'Coefficients':
        result = self._clone()
        result -= other
        return result

    def __mul__(self, scalar: (int, float)) -> 'Coefficients':
        """
        Not in-place. Returns scaled copy, the original is untouched.
        """
        result = self._clone()
        result *= scalar
        return result
