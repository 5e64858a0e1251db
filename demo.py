#demo.py
"""
Runs the three flows of the demo:
    - curve fit: learn a, b, c, d of a cubic from noisy samples, plotting before and after training.
    - mnist: train a small CNN on handwritten digits and show its predictions on a test batch.
    - linear: fit a one-unit dense regressor to four points on y = 2x - 1 and run it on a single input.

All flows run as coroutines on one asyncio event loop. The trainer yields to the loop after every step.
"""

import argparse
import asyncio
from copy import deepcopy

import torch

from cubic_coefficients import Coefficients
from cubic_data import generate_data
from cubic_model import predict, loss
from trainer import Trainer
from mnist_data import MnistData
import digit_classifier
import linear_model
from utils.plots import plot_data, render_coefficients, plot_loss, show_test_results, save_fig_with_cfg
from utils.profiler import profiler

# config dict for a run
DEFAULT_CONFIG = {
    'true_coeffs': {'a': -.8, 'b': -.2, 'c': .9, 'd': .5},  # the cubic the samples are drawn from
    'samples': 100,
    'sigma': 0.04,              # standard deviation of the measurement noise
    'normalize': True,          # rescale y to [0, 1]
    'iterations': 75,
    'learning_rate': 0.5,
    'gradient': 'analytic',     # 'analytic' or 'autograd'
    'yield_every': 1,           # hand control back to the event loop every n steps
    'seed': None,               # None: different data and initial coefficients every run
    'mnist_root': './data',
    'mnist_batches': 150,
    'mnist_test_examples': 50,
    'linear_epochs': 100,
    'linear_learning_rate': 0.01,
    'linear_input': 5.,         # the number the fitted line is queried with
    'show': True,               # open the figures in the browser
    'save_dir': None,           # if set, save every figure as SVG with the config embedded
}

def _publish(fig, cfg: dict) -> None:
    if cfg['show']:
        fig.show()
    if cfg['save_dir']:
        save_fig_with_cfg(dir=cfg['save_dir'], fig=fig, config=cfg)

async def learn_coefficients(cfg: dict) -> dict:
    """
    Generate data, plot it, fit the cubic, plot the fit.

    Returns:
        dict: 'initial' and 'trained' coefficients, 'initial_loss', 'final_loss' and the 'history' DataFrame.
    """
    generator = torch.Generator().manual_seed(cfg['seed']) if cfg['seed'] is not None else None

    samples = generate_data(cfg['samples'], cfg['true_coeffs'], sigma=cfg['sigma'], normalize=cfg['normalize'], generator=generator)
    xs, ys = samples.tensors

    # Plot original data
    render_coefficients('Original Data', cfg['true_coeffs'])
    _publish(plot_data('Original Data', xs, ys), cfg)

    # See what the predictions look like with random coefficients
    coeffs = Coefficients.random(generator=generator)
    initial = coeffs.to_dict()
    render_coefficients('Random Coefficients', initial)
    predictions_before = predict(coeffs, xs)
    initial_loss = loss(predictions_before, ys)
    _publish(plot_data('Random Coefficients', xs, ys, predictions_before), cfg)

    trainer = Trainer(coeffs, gradient=cfg['gradient'], yield_every=cfg['yield_every'], verbose=True)
    with profiler(f"{cfg['iterations']} steps of gradient descent"):
        await trainer.train_async(xs, ys, cfg['iterations'], cfg['learning_rate'])

    # See what the final results predictions are after training.
    render_coefficients('Trained Coefficients', coeffs)
    predictions_after = predict(coeffs, xs)
    final_loss = loss(predictions_after, ys)
    _publish(plot_data('Trained Coefficients', xs, ys, predictions_after), cfg)

    history = trainer.history_frame()
    if len(history):
        _publish(plot_loss(history, 'the Cubic Fit'), cfg)

    print(f'Loss before training: {initial_loss:.6f}, after: {final_loss:.6f}')
    return {
        'initial': initial,
        'trained': coeffs.to_dict(),
        'initial_loss': initial_loss,
        'final_loss': final_loss,
        'history': history,
    }

async def mnist(cfg: dict, data: MnistData = None) -> dict:
    """
    Load MNIST, train the digit classifier and show its predictions on a test batch.
    """
    if data is None:
        data = MnistData(root=cfg['mnist_root'])
    with profiler('Loading MNIST'):
        await data.load()

    model = digit_classifier.DigitCNN()
    with profiler(f"Training the classifier for {cfg['mnist_batches']} batches"):
        # the classifier loop is synchronous, run it off the event loop
        logged = await asyncio.to_thread(
            digit_classifier.train, model, data, digit_classifier.training_log, batches=cfg['mnist_batches'])

    batch = data.next_test_batch(cfg['mnist_test_examples'])
    predictions = digit_classifier.predict(model, batch['xs'])
    labels = digit_classifier.classes_from_label(batch['labels'])
    _publish(show_test_results(batch, predictions, labels), cfg)

    accuracy = (predictions == labels).float().mean().item()
    print(f'Accuracy on {len(labels)} test examples: {accuracy:.3f}')
    return {'model': model, 'log': logged, 'accuracy': accuracy}

async def linear(cfg: dict) -> dict:
    """
    Fit y = weight * x + bias to four points on y = 2x - 1, then run it on cfg['linear_input'].
    """
    if cfg['seed'] is not None:
        torch.manual_seed(cfg['seed'])
    model = linear_model.build_model()
    with profiler(f"Fitting the line for {cfg['linear_epochs']} epochs"):
        losses = linear_model.fit(model, epochs=cfg['linear_epochs'], learning_rate=cfg['linear_learning_rate'])

    xs = [row[0] for row in linear_model.TRAINING_XS]
    ys = [row[0] for row in linear_model.TRAINING_YS]
    _publish(plot_data('Fitted Line', xs, ys, [linear_model.infer(model, x) for x in xs]), cfg)

    result = linear_model.infer(model, cfg['linear_input'])
    print(f"Result is : {result:.4f}")
    return {'model': model, 'losses': losses, 'input': cfg['linear_input'], 'result': result}

def parse_args(argv=None) -> dict:
    parser = argparse.ArgumentParser(description='Fit a cubic by gradient descent, classify handwritten digits, and fit a line.')
    parser.add_argument('--flow', choices=['curve', 'mnist', 'linear', 'both'], default='curve')
    parser.add_argument('--iterations', type=int, default=DEFAULT_CONFIG['iterations'])
    parser.add_argument('--learning-rate', type=float, default=DEFAULT_CONFIG['learning_rate'])
    parser.add_argument('--gradient', choices=['analytic', 'autograd'], default=DEFAULT_CONFIG['gradient'])
    parser.add_argument('--input', type=float, default=DEFAULT_CONFIG['linear_input'], help='value to run the linear model on')
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--save-dir', default=None)
    parser.add_argument('--no-show', action='store_true', help='do not open the figures')
    args = parser.parse_args(argv)

    cfg = deepcopy(DEFAULT_CONFIG)
    cfg.update({
        'flow': args.flow,
        'iterations': args.iterations,
        'learning_rate': args.learning_rate,
        'gradient': args.gradient,
        'seed': args.seed,
        'linear_input': args.input,
        'save_dir': args.save_dir,
        'show': not args.no_show,
    })
    return cfg

async def run(cfg: dict) -> None:
    if cfg['flow'] in ('curve', 'both'):
        await learn_coefficients(cfg)
    if cfg['flow'] in ('mnist', 'both'):
        await mnist(cfg)
    if cfg['flow'] == 'linear':
        await linear(cfg)

def main(argv=None) -> None:
    cfg = parse_args(argv)
    print(f"Running the {cfg['flow']} flow")
    asyncio.run(run(cfg))

if __name__ == '__main__':
    main()
