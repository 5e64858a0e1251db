#trainer.py
"""
Batch gradient descent on the cubic coefficients.

The Trainer owns one set of Coefficients and is the only thing that writes to them.
Training is a generator: every step yields a TrainingStep, which is the point where the host
gets control back. train() drains the generator synchronously, train_async() awaits the event
loop between steps so that a UI or a web server running on the same loop stays responsive.
Cancellation is cooperative: stop iterating, or return False from the callback.
"""

import asyncio
import inspect
import math
from dataclasses import dataclass, field
from warnings import warn

import pandas as pd
from tqdm import tqdm

from cubic_coefficients import Coefficients, NAMES
from cubic_model import as_tensor, loss_and_gradients, GRADIENT_METHODS
from errors import InvalidArgument, DimensionMismatch

@dataclass(frozen=True)
class TrainingStep:
    """
    One step of gradient descent.
    loss: the loss before this step's update.
    coefficients: the coefficients after this step's update.
    """
    step: int
    loss: float
    coefficients: dict = field(default_factory=dict)

class Trainer:
    """
    Fits Coefficients to samples by batch gradient descent.

    Attributes:
        coeffs (Coefficients): the live coefficients, mutated in place every step.
        gradient (str): 'analytic' (closed form) or 'autograd' (torch.autograd).
        yield_every (int): train_async() hands control to the event loop every this many steps.
        verbose (bool): show a tqdm progress bar.
        history ([TrainingStep]): every step of the most recent run.
    """
    def __init__(self, coeffs: Coefficients, gradient: str = 'analytic', yield_every: int = 1, verbose: bool = False) -> None:
        if not isinstance(coeffs, Coefficients):
            raise TypeError(f"Expected 'coeffs' type Coefficients, got {type(coeffs)}")
        if gradient not in GRADIENT_METHODS:
            raise InvalidArgument(f"Unknown gradient method '{gradient}', expected one of {GRADIENT_METHODS}.")
        if isinstance(yield_every, bool) or not isinstance(yield_every, int) or yield_every < 1:
            raise InvalidArgument(f"'yield_every' must be a positive integer, got {yield_every!r}.")
        self.coeffs = coeffs
        self.gradient = gradient
        self.yield_every = yield_every
        self.verbose = verbose
        self.history = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _validate(self, xs, ys, iterations: int, learning_rate: float):
        xs = as_tensor(xs, 'xs')
        ys = as_tensor(ys, 'ys')
        if len(xs) != len(ys):
            raise DimensionMismatch(f"'xs' has length {len(xs)} but 'ys' has length {len(ys)}.")
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 0:
            raise InvalidArgument(f"'iterations' must be a non-negative integer, got {iterations!r}.")
        if isinstance(learning_rate, bool) or not isinstance(learning_rate, (int, float)):
            raise InvalidArgument(f"'learning_rate' must be a number, got {type(learning_rate)}.")
        if not math.isfinite(learning_rate) or learning_rate < 0:
            raise InvalidArgument(f"'learning_rate' must be finite and non-negative, got {learning_rate}.")
        if iterations > 0 and len(xs) == 0:
            raise InvalidArgument("Cannot train on an empty sample set.")
        if self._running:
            raise RuntimeError("This Trainer is already running. Only one run may update its coefficients at a time.")
        return xs, ys

    def steps(self, xs, ys, iterations: int, learning_rate: float):
        """
        Returns a generator that performs one gradient descent step per iteration and yields a TrainingStep after each.
        The arguments are validated right away, not on the first next().
        """
        xs, ys = self._validate(xs, ys, iterations, learning_rate)
        return self._run(xs, ys, iterations, float(learning_rate))

    def _run(self, xs, ys, iterations: int, learning_rate: float):
        # two generators can pass validation before either starts
        if self._running:
            raise RuntimeError("This Trainer is already running. Only one run may update its coefficients at a time.")
        self._running = True
        self.history = []
        try:
            for step in tqdm(range(1, iterations + 1), desc='Training', disable=not self.verbose):
                current_loss, grads = loss_and_gradients(self.coeffs, xs, ys, method=self.gradient)

                update = grads * learning_rate
                updated = (self.coeffs - update).to_dict().values()
                if not math.isfinite(current_loss) or not all(math.isfinite(v) for v in updated):
                    warn(f"Training diverged at step {step}: loss is {current_loss}. Stopping with the last finite coefficients.", RuntimeWarning)
                    return

                self.coeffs -= update

                record = TrainingStep(step=step, loss=current_loss, coefficients=self.coeffs.to_dict())
                self.history.append(record)
                yield record
        finally:
            self._running = False

    def train(self, xs, ys, iterations: int, learning_rate: float, callback=None) -> Coefficients:
        """
        Runs all steps synchronously.
        callback(step) is called after every step. Returning False stops the run early.
        """
        run = self.steps(xs, ys, iterations, learning_rate)
        try:
            for record in run:
                if callback is not None and callback(record) is False:
                    break
        finally:
            run.close()
        return self.coeffs

    async def train_async(self, xs, ys, iterations: int, learning_rate: float, callback=None) -> Coefficients:
        """
        Same as train(), but awaits the event loop every `yield_every` steps.
        The callback may be a coroutine function.
        """
        run = self.steps(xs, ys, iterations, learning_rate)
        try:
            for record in run:
                if callback is not None:
                    keep_going = callback(record)
                    if inspect.isawaitable(keep_going):
                        keep_going = await keep_going
                    if keep_going is False:
                        break
                if record.step % self.yield_every == 0:
                    await asyncio.sleep(0)
        finally:
            run.close()
        return self.coeffs

    def history_frame(self) -> pd.DataFrame:
        """
        The history of the most recent run as a DataFrame indexed by 'Step', with columns 'Loss', 'a', 'b', 'c', 'd'.
        """
        rows = [{'Step': s.step, 'Loss': s.loss, **s.coefficients} for s in self.history]
        df = pd.DataFrame(rows, columns=['Step', 'Loss', *NAMES])
        return df.set_index('Step')

def train(coeffs: Coefficients, xs, ys, iterations: int, learning_rate: float, gradient: str = 'analytic') -> Coefficients:
    """
    Fit `coeffs` in place by batch gradient descent and return them.
    """
    return Trainer(coeffs, gradient=gradient).train(xs, ys, iterations, learning_rate)
