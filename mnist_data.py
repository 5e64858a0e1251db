#mnist_data.py
"""
Batches of handwritten digits for the classifier flow.

MnistData hands out shuffled batches of MNIST images and one-hot labels, cycling through
its index permutation forever. The files themselves are fetched and parsed by torchvision.
"""

import asyncio
import torch
import torch.nn.functional as F
from torch.utils.data import Dataset
from torchvision import transforms
from torchvision.datasets import MNIST
from errors import InvalidArgument

NUM_CLASSES = 10
IMAGE_SHAPE = (1, 28, 28)

class MnistData:
    """
    Attributes:
        root (str): where torchvision stores the MNIST files.
        train_set (Dataset): (image, label) pairs used by next_train_batch(). Downloaded by load() if not given.
        test_set (Dataset): (image, label) pairs used by next_test_batch(). Downloaded by load() if not given.
        generator (torch.Generator): seeds the shuffling.
    """
    def __init__(self, root: str = './data', train_set: Dataset = None, test_set: Dataset = None, generator: torch.Generator = None) -> None:
        self.root = root
        self.train_set = train_set
        self.test_set = test_set
        self.generator = generator
        self._indices = {}
        self._position = {}

    @property
    def loaded(self) -> bool:
        return bool(self._indices)

    def _download(self) -> None:
        # pixel values scaled to [0, 1]
        transform = transforms.ToTensor()
        if self.train_set is None:
            self.train_set = MNIST(self.root, train=True, download=True, transform=transform)
        if self.test_set is None:
            self.test_set = MNIST(self.root, train=False, download=True, transform=transform)

    async def load(self) -> None:
        """
        Fetches whatever datasets were not passed in, then shuffles the indices.
        The download runs in a worker thread so the event loop is not blocked.
        """
        if self.train_set is None or self.test_set is None:
            await asyncio.to_thread(self._download)

        splits = (('train', self.train_set), ('test', self.test_set))
        # both splits are checked before either is marked as loaded
        for split, dataset in splits:
            if len(dataset) == 0:
                raise InvalidArgument(f"The {split} set is empty.")
        for split, dataset in splits:
            self._indices[split] = torch.randperm(len(dataset), generator=self.generator)
            self._position[split] = 0

    def next_train_batch(self, n: int) -> dict:
        return self._next_batch('train', self.train_set, n)

    def next_test_batch(self, n: int) -> dict:
        return self._next_batch('test', self.test_set, n)

    def _next_batch(self, split: str, dataset: Dataset, n: int) -> dict:
        """
        Returns:
            dict: 'xs' float tensor of shape (n, 1, 28, 28), 'labels' one-hot float tensor of shape (n, 10).
        """
        if not self.loaded:
            raise RuntimeError("MnistData.load() must be awaited before asking for batches.")
        if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
            raise InvalidArgument(f"Batch size must be a positive integer, got {n!r}.")

        indices = self._indices[split]
        images, labels = [], []
        for _ in range(n):
            image, label = dataset[int(indices[self._position[split]])]
            images.append(torch.as_tensor(image, dtype=torch.float32).reshape(IMAGE_SHAPE))
            labels.append(int(label))
            # wrap around once every image has been served
            self._position[split] = (self._position[split] + 1) % len(indices)

        return {
            'xs': torch.stack(images),
            'labels': F.one_hot(torch.tensor(labels), NUM_CLASSES).float(),
        }
