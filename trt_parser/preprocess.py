"""
GPU preprocessing: HWC uint8 image -> normalized planar float32 input buffer.

Performs: transfer -> nearest resize -> scale to [0,1] -> mean/std -> split
channels into back-to-back planes of the device buffer.
"""
import numpy as np
import torch

from .buffers import stream_scope
from .errors import BindingError, EmptyImageError
from .utils import element_count

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)


def preprocess_image(image, target, shape, input_size=(128, 128), mean=IMAGENET_MEAN,
                     std=IMAGENET_STD, stream=None):
    """
    Write a network-ready tensor for ``image`` into ``target``

    Args:
        image: Host image as numpy array (H, W, C)
        target: DeviceBuffer of the input binding
        shape: Input binding shape (per sample)
        input_size: Target size as (height, width)
        mean: Per-channel mean subtracted after scaling
        std: Per-channel standard deviation divided out
        stream: CUDA stream or None

    Raises:
        EmptyImageError: image has no data
        BindingError: buffer or binding too small for the planar tensor
    """
    if image is None or np.asarray(image).size == 0:
        raise EmptyImageError()
    image = np.asarray(image)
    if image.ndim == 2:
        image = image[:, :, np.newaxis]
    channels = image.shape[2]
    if channels != len(mean) or channels != len(std):
        raise ValueError(f'Expected {len(mean)}-channel image, got shape {image.shape}')

    height, width = input_size
    planar_size = channels * height * width
    if planar_size > element_count(shape) or planar_size > target.num_elements:
        raise BindingError('Input binding is smaller than the preprocessed image',
                           context={'binding_shape': tuple(shape),
                                    'image_elements': planar_size,
                                    'buffer_elements': target.num_elements})

    device = target.device
    with stream_scope(stream):
        img_tensor = torch.from_numpy(np.ascontiguousarray(image)).to(device=device, non_blocking=True)

        # HWC -> NCHW
        img_nchw = img_tensor.permute(2, 0, 1).unsqueeze(0).float()

        if img_nchw.shape[2] != height or img_nchw.shape[3] != width:
            img_nchw = torch.nn.functional.interpolate(img_nchw, size=(height, width), mode='nearest')

        # [0,255] -> [0,1]
        img_nchw = img_nchw.div_(255.0)

        mean_t = torch.tensor(mean, dtype=torch.float32, device=device).view(1, channels, 1, 1)
        std_t = torch.tensor(std, dtype=torch.float32, device=device).view(1, channels, 1, 1)
        normalized = (img_nchw - mean_t) / std_t

        planes = target.tensor[:planar_size].view(channels, height, width)
        planes.copy_(normalized[0], non_blocking=True)
