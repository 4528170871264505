"""Copy output bindings from device to host."""
import torch

from .buffers import stream_scope, synchronize
from .errors import BindingError
from .utils import element_count


def postprocess_results(source, shape, batch_size, stream=None):
    """
    Copy ``element_count(shape) * batch_size`` floats from ``source`` to host

    Args:
        source: DeviceBuffer of the output binding
        shape: Output binding shape (per sample)
        batch_size: Samples per call
        stream: CUDA stream the copy is queued on, or None

    Returns:
        np.ndarray: Flat float32 results
    """
    count = element_count(shape) * batch_size
    if count > source.num_elements:
        raise BindingError('Output buffer is smaller than the output binding',
                           context={'expected': count, 'available': source.num_elements})

    pinned = source.device.type == 'cuda'
    host = torch.empty(count, dtype=torch.float32, pin_memory=pinned)
    with stream_scope(stream):
        host.copy_(source.tensor[:count], non_blocking=pinned)
    synchronize(stream)
    return host.numpy()
