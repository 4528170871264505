"""
Pytest configuration for trt_parser tests.
"""
import sys
from pathlib import Path
from unittest import mock

import pytest

# Add the project root to sys.path so we can import trt_parser
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.fakes import make_fake_onnxruntime, make_fake_tensorrt, write_graph  # noqa: E402


@pytest.fixture
def fake_trt():
    """Install the fake TensorRT API for the duration of a test."""
    module = make_fake_tensorrt()
    with mock.patch.dict(sys.modules, {'tensorrt': module}):
        yield module


@pytest.fixture
def fake_ort():
    """Install the fake ONNX Runtime API for the duration of a test."""
    module = make_fake_onnxruntime()
    with mock.patch.dict(sys.modules, {'onnxruntime': module}):
        yield module


@pytest.fixture
def cpu_config():
    from trt_parser.config import build_config

    return build_config({'device': 'cpu'})


@pytest.fixture
def graph_path(tmp_path):
    """Graph with dynamic batch: NHWC 128x128x3 input, 10-way output."""
    return write_graph(tmp_path / 'model.onnx',
                       inputs=[('input_1', (-1, 128, 128, 3))],
                       outputs=[('output', (-1, 10))])


@pytest.fixture
def image():
    import numpy as np

    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(240, 320, 3), dtype=np.uint8)
