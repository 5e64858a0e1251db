# test_digit_classifier.py
import asyncio
import pytest
import torch
from torch.utils.data import TensorDataset
import digit_classifier
from digit_classifier import DigitCNN, classes_from_label, predict
from mnist_data import MnistData
from errors import InvalidArgument

@pytest.fixture
def model():
    torch.manual_seed(0)
    return DigitCNN()

@pytest.fixture
def data():
    """Two easy classes: dark images are 0, bright images are 1."""
    images = torch.cat([torch.zeros(20, 1, 28, 28), torch.ones(20, 1, 28, 28)])
    labels = torch.cat([torch.zeros(20, dtype=torch.int64), torch.ones(20, dtype=torch.int64)])
    dataset = TensorDataset(images, labels)
    data = MnistData(train_set=dataset, test_set=dataset, generator=torch.Generator().manual_seed(0))
    asyncio.run(data.load())
    return data

def test_output_shape(model):
    output = model(torch.rand(4, 1, 28, 28))
    assert output.shape == (4, 10)

def test_classes_from_label():
    labels = torch.eye(10)[[3, 0, 9]]
    assert classes_from_label(labels).tolist() == [3, 0, 9]

def test_predict(model):
    predictions = predict(model, torch.rand(5, 1, 28, 28))
    assert predictions.shape == (5,)
    assert predictions.dtype == torch.int64
    assert torch.all((predictions >= 0) & (predictions < 10))
    assert not model.training, "predict() should put the model in eval mode."

def test_train_logs_and_learns(model, data):
    calls = []
    logged = digit_classifier.train(model, data, log=lambda *args: calls.append(args),
                                    batches=60, batch_size=8, test_batch_size=10, test_every=10, learning_rate=0.3)

    assert [batch for batch, _, _ in logged] == [0, 10, 20, 30, 40, 50]
    assert calls == logged
    for _, loss, accuracy in logged:
        assert loss > 0
        assert 0 <= accuracy <= 1
    assert logged[-1][1] < logged[0][1], "Training loss did not go down."
    assert logged[-1][2] >= 0.9, "The classifier did not learn to tell dark from bright images."

def test_training_log(capsys):
    digit_classifier.training_log(5, 0.25, 0.875)
    out = capsys.readouterr().out
    assert '5' in out and '0.2500' in out and '0.875' in out

@pytest.mark.parametrize('bad', [
    {'test_every': 0},
    {'batches': 0},
    {'batch_size': -1},
    {'test_batch_size': 2.5},
    {'batches': True},
])
def test_train_rejects_non_positive_counts(model, data, bad):
    with pytest.raises(InvalidArgument):
        digit_classifier.train(model, data, **bad)
