"""
Parser

Owns one TensorRT engine and its execution context. The engine is compiled
from an ONNX graph or restored from a serialized plan depending on the model
file extension. Each inference call allocates device buffers for every
binding, preprocesses the image into the input binding, executes, copies
the output binding back and releases the buffers.
"""
import logging
import os
import threading
import time

import numpy as np
import torch

from .buffers import (allocate_buffers, create_stream, resolve_bindings, stream_handle,
                      stream_scope, synchronize)
from .builder import build_engine, default_profile
from .config import build_config
from .errors import (BindingError, ConfigurationError, DeserializationError, InferenceError,
                     ProfileError)
from .exporter import export_engine
from .loader import load_engine
from .logger import get_default_logger
from .model import ModelKind, ModelSource
from .postprocess import postprocess_results
from .preprocess import preprocess_image
from .utils import log_model_info

logger = logging.getLogger(__name__)


class Parser:
    """
    TensorRT engine wrapper with a fixed preprocess/execute/postprocess pipeline

    Args:
        model_path: ``.onnx`` graph (built) or ``.trt``/``.engine``/``.plan`` (loaded)
        batch_size: Samples per inference call; also the profile batch dimension
        config: Configuration dict, see ``config.DEFAULT_CONFIG``
        diagnostics: DiagnosticLogger for backend messages

    Raises:
        UnsupportedFormatError: unknown model extension
        FileNotFoundError: model file missing
        GraphParseError, EngineBuildError: graph build failed
        DeserializationError: plan could not be restored
        ProfileError: invalid build profile, or plan profile does not cover batch_size
        BindingError: engine shapes cannot be resolved
    """

    def __init__(self, model_path, batch_size=1, config=None, diagnostics=None):
        self.source = ModelSource.from_path(model_path)
        self.model_path = self.source.path
        if not isinstance(batch_size, int) or batch_size < 1:
            raise ConfigurationError('batch_size', f'must be a positive integer, got {batch_size}')
        self.batch_size = batch_size
        self.config = build_config(config)
        self.diagnostics = diagnostics or get_default_logger()

        self.device = torch.device(self.config['device'])
        if self.device.type == 'cuda':
            if not torch.cuda.is_available():
                raise RuntimeError('CUDA not available, cannot use TensorRT acceleration.')
            torch.cuda.set_device(self.device)
        else:
            logger.warning('Device %s holds host memory; TensorRT kernels cannot execute on it', self.device)

        if self.source.kind is ModelKind.GRAPH:
            handle = build_engine(self.model_path, self.diagnostics, self.config, self.batch_size)
        else:
            handle = load_engine(self.model_path, self.diagnostics)
        self.engine = handle.engine
        self.context = handle.context
        self._runtime = handle.runtime

        self.stream = create_stream(self.device)
        fallback_shape = default_profile(self.config, self.batch_size).opt
        self.bindings = resolve_bindings(self.engine, self.context, self.batch_size, fallback_shape)

        self._lock = threading.Lock()
        self._inference_count = 0
        self._total_inference_time = 0.0

        input_binding, output_binding = self.input_binding, self.output_binding
        log_model_info(
            self.model_path,
            self.source.kind.value,
            input_binding.shape if input_binding else None,
            output_binding.shape if output_binding else None,
            self.batch_size,
            extra={'bindings': len(self.bindings), 'device': str(self.device)},
            enabled=self.config['run_log'],
        )

    @classmethod
    def load_or_build(cls, model_path, batch_size=1, config=None, diagnostics=None):
        """
        Reuse the plan next to an ONNX file, or build and export it

        A plan that fails to deserialize (e.g. built for another GPU) or whose
        profile does not cover ``batch_size`` is rebuilt from the graph and
        overwritten.
        """
        source = ModelSource.from_path(model_path)
        if source.kind is ModelKind.GRAPH and os.path.isfile(source.engine_path):
            try:
                return cls(source.engine_path, batch_size, config, diagnostics)
            except (DeserializationError, ProfileError) as e:
                logger.warning('Cached engine %s unusable, rebuilding: %s', source.engine_path, e.message)
        parser = cls(model_path, batch_size, config, diagnostics)
        if source.kind is ModelKind.GRAPH and not parser.export():
            logger.warning('Engine export failed, the next run will rebuild %s', model_path)
        return parser

    @property
    def engine_path(self):
        return self.source.engine_path

    @property
    def input_binding(self):
        return next((b for b in self.bindings if b.is_input), None)

    @property
    def output_binding(self):
        return next((b for b in self.bindings if not b.is_input), None)

    def inference(self, image):
        """
        Run the full pipeline on one image

        Args:
            image: Host image as numpy array (H, W, 3) uint8

        Returns:
            np.ndarray: Flat float32 output of the first output binding,
                ``element_count(shape) * batch_size`` values

        Raises:
            BindingError: engine lacks an input or an output binding
            EmptyImageError: image has no data
            InferenceError: the execution context rejected the call
        """
        start_time = time.perf_counter()
        with self._lock, stream_scope(self.stream):
            with allocate_buffers(self.bindings, self.batch_size, self.device) as buffers:
                inputs = [(b, buf) for b, buf in zip(self.bindings, buffers) if b.is_input]
                outputs = [(b, buf) for b, buf in zip(self.bindings, buffers) if not b.is_input]
                if not inputs or not outputs:
                    raise BindingError('Expect at least one input and one output for network',
                                       context={'inputs': len(inputs), 'outputs': len(outputs)})

                input_binding, input_buffer = inputs[0]
                preprocess_image(image, input_buffer, input_binding.shape,
                                 input_size=tuple(self.config['input_size']),
                                 mean=tuple(self.config['mean']),
                                 std=tuple(self.config['std']),
                                 stream=self.stream)

                self._execute_inference(buffers)
                synchronize(self.stream)

                output_binding, output_buffer = outputs[0]
                result = postprocess_results(output_buffer, output_binding.shape, self.batch_size,
                                             stream=self.stream)
            self._inference_count += 1
            self._total_inference_time += time.perf_counter() - start_time
        return result

    def _execute_inference(self, buffers):
        for binding, buf in zip(self.bindings, buffers):
            self.context.set_tensor_address(binding.name, buf.ptr)
        if not self.context.execute_async_v3(stream_handle=stream_handle(self.stream)):
            raise InferenceError('TensorRT execution failed', context={'model_path': self.model_path})

    def export(self):
        """Serialize the engine to ``engine_path``; returns whether it was written."""
        return export_engine(self.engine, self.engine_path)

    def warmup(self, iterations=3):
        """Run a few inferences on a black image."""
        height, width = self.config['input_size']
        dummy = np.zeros((height, width, len(self.config['mean'])), dtype=np.uint8)
        for _ in range(iterations):
            self.inference(dummy)

    def get_performance_info(self):
        avg_inference_time = (self._total_inference_time / self._inference_count
                              if self._inference_count > 0 else 0.0)
        return {'inference_count': self._inference_count,
                'total_inference_time': self._total_inference_time,
                'avg_inference_time': avg_inference_time}

    def reset_performance_stats(self):
        self._inference_count = 0
        self._total_inference_time = 0.0
