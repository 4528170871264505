"""Engine Loader: restore a serialized TensorRT plan without recompiling."""
import logging
import os

from .errors import DeserializationError
from .logger import get_default_logger
from .model import EngineHandle
from .utils import import_tensorrt

logger = logging.getLogger(__name__)


def read_plan(engine_path):
    if not os.path.isfile(engine_path):
        raise FileNotFoundError(f'Engine file not found: {engine_path}')
    with open(engine_path, 'rb') as f:
        data = f.read()
    logger.info('Read %d bytes from %s', len(data), engine_path)
    return data


def load_engine(engine_path, diagnostics=None):
    """
    Deserialize a plan file into an engine and execution context

    Raises:
        FileNotFoundError: plan file does not exist
        DeserializationError: file is empty or the runtime rejects it
    """
    trt = import_tensorrt()
    diagnostics = diagnostics or get_default_logger()

    data = read_plan(engine_path)
    if not data:
        raise DeserializationError('Engine file is empty', context={'engine_path': engine_path})

    runtime = trt.Runtime(diagnostics.as_trt_logger())
    engine = runtime.deserialize_cuda_engine(data)
    if engine is None:
        raise DeserializationError(
            'TensorRT engine load failed',
            suggestions=['Rebuild the engine on this GPU and TensorRT version'],
            context={'engine_path': engine_path, 'size': len(data)})
    context = engine.create_execution_context()
    if context is None:
        raise DeserializationError('Cannot create execution context',
                                   context={'engine_path': engine_path})
    return EngineHandle(engine, context, runtime)
