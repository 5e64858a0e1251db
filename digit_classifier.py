#digit_classifier.py
"""
A small CNN that classifies MNIST digits, and the loop that trains it on batches from MnistData.
"""

import torch
import torch.nn as nn
import torch.nn.functional as F
from mnist_data import MnistData
from errors import InvalidArgument

class DigitCNN(nn.Module):
    """
    Two convolution + max pooling blocks and a linear head.
    Input: (batch, 1, 28, 28). Output: (batch, 10) logits.
    """
    def __init__(self):
        super(DigitCNN, self).__init__()
        # 28x28 -> 24x24, pooled to 12x12
        self.conv1 = nn.Conv2d(1, 8, kernel_size=5)
        # 12x12 -> 8x8, pooled to 4x4
        self.conv2 = nn.Conv2d(8, 16, kernel_size=5)
        self.fc = nn.Linear(16 * 4 * 4, 10)

    def forward(self, x):
        x = F.relu(F.max_pool2d(self.conv1(x), 2))
        x = F.relu(F.max_pool2d(self.conv2(x), 2))
        x = x.flatten(1)
        return self.fc(x)

def classes_from_label(labels: torch.Tensor) -> torch.Tensor:
    """One-hot labels to class indices."""
    return labels.argmax(dim=1)

@torch.no_grad
def predict(model: nn.Module, xs: torch.Tensor) -> torch.Tensor:
    model.eval()
    return model(xs).argmax(dim=1)

def training_log(batch: int, loss: float, accuracy: float) -> None:
    print(f'Batch {batch:4d} | loss {loss:.4f} | test accuracy {accuracy:.3f}')

def train(
    model: nn.Module,
    data: MnistData,
    log=None,
    batches: int = 150,
    batch_size: int = 64,
    test_batch_size: int = 1000,
    test_every: int = 5,
    learning_rate: float = 0.15,
) -> [(int, float, float)]:
    """
    Plain SGD on cross entropy, one fresh training batch per step.
    Every `test_every` batches the accuracy on a test batch is measured and passed to log(batch, loss, accuracy).

    Returns:
        [(int, float, float)]: every (batch, loss, accuracy) that was logged.
    """
    counts = {'batches': batches, 'batch_size': batch_size, 'test_batch_size': test_batch_size, 'test_every': test_every}
    for name, n in counts.items():
        if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
            raise InvalidArgument(f"'{name}' must be a positive integer, got {n!r}.")

    optimizer = torch.optim.SGD(model.parameters(), lr=learning_rate)
    logged = []

    for batch in range(batches):
        model.train()
        train_batch = data.next_train_batch(batch_size)

        optimizer.zero_grad()
        output = model(train_batch['xs'])
        loss = F.cross_entropy(output, classes_from_label(train_batch['labels']))
        loss.backward()
        optimizer.step()

        if batch % test_every == 0:
            test_batch = data.next_test_batch(test_batch_size)
            correct = predict(model, test_batch['xs']) == classes_from_label(test_batch['labels'])
            accuracy = correct.float().mean().item()
            logged.append((batch, loss.item(), accuracy))
            if log is not None:
                log(batch, loss.item(), accuracy)

    return logged
