import xml.etree.ElementTree as ET
from xml.dom import minidom
import json
import os
from collections.abc import Mapping
import plotly.graph_objects as go
import plotly.express as px
import pandas as pd
import numpy as np
import torch

# Common layout settings
COMMON_LAYOUT = {
    'template': 'seaborn',
    'height': 600
}

def _to_numpy(values) -> np.ndarray:
    if isinstance(values, torch.Tensor):
        values = values.detach().cpu()
    return np.asarray(values, dtype=np.float64).reshape(-1)

def plot_data(container_id: str, xs, ys, predictions=None) -> go.Figure:
    """
    Scatter plot of the samples, plus the predicted curve if `predictions` is given.
    `container_id` names the figure, e.g. "Original Data".
    """
    xs, ys = _to_numpy(xs), _to_numpy(ys)
    if len(xs) != len(ys):
        raise ValueError(f'xs and ys must have the same length, but got {len(xs)} and {len(ys)}')

    fig = go.Figure(layout={
        **COMMON_LAYOUT,
        'title': container_id,
        'xaxis': {'title': 'x'},
        'yaxis': {'title': 'y'},
    })
    fig.add_trace(go.Scatter(x=xs, y=ys, mode='markers', name='Data'))

    if predictions is not None:
        predictions = _to_numpy(predictions)
        if len(predictions) != len(xs):
            raise ValueError(f'predictions must have the same length as xs, but got {len(predictions)} and {len(xs)}')
        # sort by x so the curve is drawn left to right
        order = np.argsort(xs)
        fig.add_trace(go.Scatter(x=xs[order], y=predictions[order], mode='lines', name='Prediction'))

    return fig

def render_coefficients(container_id: str, coeffs) -> str:
    """
    One-line summary 'a=..., b=..., c=..., d=...' with three decimals. Printed and returned.
    Accepts Coefficients or any mapping with the keys a, b, c, d.
    """
    values = coeffs if isinstance(coeffs, Mapping) else coeffs.to_dict()
    text = ', '.join(f'{name}={float(values[name]):.3f}' for name in ('a', 'b', 'c', 'd'))
    print(f'{container_id}: {text}')
    return text

def plot_loss(history: pd.DataFrame, description: str) -> go.Figure:
    """
    Loss per training step. `history` is Trainer.history_frame().
    """
    fig = go.Figure(layout={
        **COMMON_LAYOUT,
        'title': f'Training Loss of {description}',
        'xaxis': {'title': 'Step'},
        'yaxis': {'title': 'Loss', 'type': 'log'},
    })
    fig.add_trace(go.Scatter(x=history.index, y=history['Loss'], mode='lines+markers', name='Loss'))
    return fig

def show_test_results(batch: dict, predictions: torch.Tensor, labels: torch.Tensor) -> go.Figure:
    """
    Grid of test digits. Each panel is titled with the predicted and the true class.
    """
    images = batch['xs'].detach().cpu().numpy().reshape(-1, 28, 28)
    predictions = _to_numpy(predictions).astype(int)
    labels = _to_numpy(labels).astype(int)
    if not len(images) == len(predictions) == len(labels):
        raise ValueError(f'Expected as many predictions and labels as images, got {len(predictions)}, {len(labels)} and {len(images)}')

    fig = px.imshow(images, facet_col=0, facet_col_wrap=10, binary_string=True)
    correct = int((predictions == labels).sum())
    fig.update_layout(title=f'Test Results: {correct}/{len(labels)} correct', height=COMMON_LAYOUT['height'])

    # facet titles come out as 'facet_col=i', replace them with the results
    def annotate(annotation):
        i = int(annotation.text.split('=')[-1])
        mark = '✓' if predictions[i] == labels[i] else '✗'
        annotation.update(text=f'{predictions[i]} ({labels[i]}) {mark}')
    fig.for_each_annotation(annotate)
    fig.update_xaxes(showticklabels=False)
    fig.update_yaxes(showticklabels=False)
    return fig

def save_fig_with_cfg(dir: str, fig: go.Figure, config: dict) -> str:
    """
    Save a plotly figure as an SVG file in dir, and embed the configuration as metadata.
    Returns the path of the file.
    """
    os.makedirs(dir, exist_ok=True)
    # Configure filename from plot title and directory
    filename = f"{fig.layout.title.text.replace(' ', '_').replace('/', '_')}.svg"
    filename = os.path.join(dir, filename)
    fig.write_image(filename)

    # Parse the saved SVG file and prepare metadata element
    tree = ET.parse(filename)
    root = tree.getroot()
    metadata = ET.Element("metadata")
    metadata.text = json.dumps(config, indent=4, default=str)

    # Insert metadata as the first child of the root element
    root.insert(0, metadata)

    pretty_xml = minidom.parseString(ET.tostring(root)).toprettyxml(indent="  ")
    with open(filename, "w") as file:
        file.write(pretty_xml)
    return filename
