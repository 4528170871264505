"""
Per-call device memory for engine bindings.

Buffers are plain float32 torch tensors on the target device; TensorRT only
sees their ``data_ptr()``. They are zero-initialised so no call ever reads
memory left over from a previous one.
"""
import contextlib
import logging

import torch

from .errors import BindingError, ProfileError
from .model import Binding
from .utils import element_count, import_tensorrt

logger = logging.getLogger(__name__)

FLOAT_SIZE = 4


class DeviceBuffer:
    """Zero-initialised float32 block of device memory."""

    def __init__(self, num_elements, device):
        self.num_elements = int(num_elements)
        self.device = torch.device(device)
        self.tensor = torch.zeros(self.num_elements, dtype=torch.float32, device=self.device)

    @property
    def ptr(self):
        return self.tensor.data_ptr()

    @property
    def nbytes(self):
        return self.num_elements * FLOAT_SIZE

    @property
    def freed(self):
        return self.tensor is None

    def free(self):
        # Drop the only reference; the torch allocator reclaims the block
        self.tensor = None


@contextlib.contextmanager
def allocate_buffers(bindings, batch_size, device):
    """
    Allocate one DeviceBuffer per binding, released when the block exits

    Args:
        bindings: Bindings in plan order
        batch_size: Samples per call
        device: torch device for the buffers

    Yields:
        list: DeviceBuffer per binding, same order as ``bindings``
    """
    buffers = []
    try:
        for binding in bindings:
            buffers.append(DeviceBuffer(element_count(binding.shape) * batch_size, device))
        logger.debug('Allocated %d buffers (%d bytes)', len(buffers), sum(b.nbytes for b in buffers))
        yield buffers
    finally:
        for buf in buffers:
            buf.free()
        buffers.clear()


def _profile_shape(engine, name, batch_size, fallback_shape):
    try:
        shape = tuple(engine.get_tensor_profile_shape(name, 0)[1])
    except (AttributeError, IndexError, RuntimeError, TypeError):
        shape = ()
    if not shape or any(d < 0 for d in shape):
        shape = tuple(fallback_shape)
    if shape and shape[0] != batch_size:
        shape = (batch_size,) + shape[1:]
    return shape


def _per_sample(shape, batch_size):
    if shape and shape[0] == batch_size:
        return (1,) + shape[1:]
    return shape


def _profile_bounds(engine, name):
    try:
        shapes = engine.get_tensor_profile_shape(name, 0)
        return tuple(shapes[0]), tuple(shapes[2])
    except (AttributeError, IndexError, RuntimeError, TypeError):
        return None, None


def resolve_bindings(engine, context, batch_size, fallback_shape):
    """
    Enumerate engine I/O tensors with fully specified shapes

    Inputs with dynamic dimensions get the opt shape of profile 0 (or
    ``fallback_shape``) set on the context so output shapes resolve too.
    Returned shapes are per sample: a leading dimension equal to the batch
    size is reported as 1.

    Raises:
        ProfileError: the context rejected an input shape (outside profile 0)
        BindingError: a shape still holds a wildcard dimension
    """
    trt = import_tensorrt()
    names = [engine.get_tensor_name(i) for i in range(engine.num_io_tensors)]
    directions = {name: engine.get_tensor_mode(name) == trt.TensorIOMode.INPUT for name in names}

    for name in names:
        if not directions[name]:
            continue
        shape = tuple(engine.get_tensor_shape(name))
        if any(d < 0 for d in shape):
            target = _profile_shape(engine, name, batch_size, fallback_shape)
            logger.info('Setting input shape %s -> %s', name, target)
            if not context.set_input_shape(name, target):
                min_shape, max_shape = _profile_bounds(engine, name)
                raise ProfileError(f'Input shape {target} rejected for "{name}"',
                                   suggestions=['Rebuild the engine for this batch size'],
                                   context={'requested': target, 'min': min_shape, 'max': max_shape})

    bindings = []
    for index, name in enumerate(names):
        shape = tuple(int(d) for d in context.get_tensor_shape(name))
        if any(d < 0 for d in shape):
            raise BindingError(f'Binding "{name}" has unresolved dimensions',
                               context={'shape': shape})
        bindings.append(Binding(index, name, directions[name], _per_sample(shape, batch_size)))
    return bindings


def create_stream(device):
    device = torch.device(device)
    if device.type == 'cuda':
        return torch.cuda.Stream(device=device)
    return None


def stream_scope(stream):
    if stream is None:
        return contextlib.nullcontext()
    return torch.cuda.stream(stream)


def stream_handle(stream):
    return stream.cuda_stream if stream is not None else 0


def synchronize(stream):
    """Block until all work queued on ``stream`` has finished."""
    if stream is not None:
        stream.synchronize()
