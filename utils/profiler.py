import psutil
import torch
from time import perf_counter
from contextlib import contextmanager

"""
Measure the time and memory usage of a block of code.
"""

def memory_usage() -> dict:
    """RAM, and GPU memory if there is a GPU, in GB."""
    usage = {
        'ram used ': psutil.virtual_memory().used / 1e9,
        'ram avail': psutil.virtual_memory().available / 1e9
    }
    if torch.cuda.is_available():
        usage.update({
            'gpu alloc': torch.cuda.memory_allocated() / 1e9,
            'gpu reser': torch.cuda.memory_reserved() / 1e9
        })
    return usage

@contextmanager
def profiler(description: str, length: int = 80, pad_char: str = ':', verbose: bool = True):
    """
    Yields a dict that holds 'seconds' and the memory 'delta' once the block has finished.
    Prints a banner before and after the block unless verbose is False.
    """
    report = {}
    if verbose:
        print('\n' + description.center(length, pad_char))
    before = memory_usage()
    start = perf_counter()
    try:
        yield report
    finally:
        report['seconds'] = perf_counter() - start
        after = memory_usage()
        report['delta'] = {k: after[k] - v for k, v in before.items() if k in after}
        if verbose:
            # all the memory usage DIFFERENCES on the same line with a '+' or '-' sign
            print(' | '.join(f'{k}: {v:+6.1f}' for k, v in report['delta'].items()))
            print(f'{report["seconds"]:.2f} s for {description}'.center(length, pad_char))
