import importlib
import logging
import os
import platform
import sys
import time
from typing import Dict, Optional, Sequence

VERSION = "v1.0.0"

RUN_LOG_FILE = "run_log.txt"

logger = logging.getLogger(__name__)


def element_count(shape: Sequence[int]) -> int:
    """Number of elements described by ``shape`` (1 for a scalar shape)."""
    size = 1
    for dim in shape:
        size *= int(dim)
    return size


# Name kept from the C++ Parser API
get_size_by_dim = element_count


def import_tensorrt():
    """Import the TensorRT bindings or raise with installation guidance."""
    try:
        import tensorrt as trt
    except (ImportError, OSError) as e:
        raise RuntimeError(
            f"TensorRT not detected. Install CUDA Toolkit, cuDNN and TensorRT. Error: {e}") from e
    return trt


def check_tensorrt_availability():
    """Safely detect if TensorRT environment is available"""
    try:
        import torch
        if not torch.cuda.is_available():
            logger.warning("CUDA not available via torch")
            return False

        import tensorrt as trt

        gpu_name = torch.cuda.get_device_name(0)
        logger.info("TensorRT %s available (GPU: %s)", trt.__version__, gpu_name)
        return True
    except ImportError as e:
        logger.warning("TensorRT/Torch not installed: %s", e)
        return False
    except Exception as e:
        logger.warning("CUDA/TensorRT not available: %s", e)
        return False


def _write_run_log(text: str, mode: str = "a") -> None:
    try:
        with open(RUN_LOG_FILE, mode, encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        logger.debug("Run log %s not writable: %s", RUN_LOG_FILE, e)


def reset_run_log(enabled: bool) -> None:
    """Truncate the run log at program start."""
    if enabled:
        _write_run_log("", mode="w")


def format_run_event(title: str, details: Optional[Dict[str, object]] = None) -> str:
    """Render one event: a timestamped title line, then one indented line per detail."""
    header = f"[{time.strftime('%Y-%m-%d %H:%M:%S')}] {title}\n"
    return header + "".join(f"  {key}: {value}\n" for key, value in (details or {}).items())


def log_run_event(
    title: str, details: Optional[Dict[str, object]] = None, enabled: bool = True
) -> None:
    if enabled:
        _write_run_log(format_run_event(title, details))


def _module_version(name: str) -> Optional[str]:
    try:
        module = importlib.import_module(name)
    except (ImportError, OSError):
        return None
    return getattr(module, "__version__", "unknown")


def collect_system_info() -> Dict[str, object]:
    """Versions of the inference stack and the CUDA device they will run on."""
    info: Dict[str, object] = {
        "version": VERSION,
        "platform": platform.platform(),
        "python": platform.python_version(),
        "args": " ".join(sys.argv),
    }
    for name in ("torch", "tensorrt", "onnxruntime", "cv2"):
        info[f"{name}_version"] = _module_version(name)
    info["cuda_device"] = None
    if info["torch_version"] is not None:
        import torch

        if torch.cuda.is_available():
            info["cuda_device"] = torch.cuda.get_device_name(0)
            info["cuda_runtime_version"] = torch.version.cuda
    return info


def log_startup_info(
    enabled: bool = True, reset: bool = False, extra: Optional[Dict[str, object]] = None
) -> None:
    if reset:
        reset_run_log(enabled)
    if not enabled:
        return
    details = collect_system_info()
    details["cwd"] = os.getcwd()
    if extra:
        details.update(extra)
    log_run_event("Program start", details)


def log_model_info(
    model_path: str,
    kind: str,
    input_shape: object,
    output_shape: object,
    batch_size: int,
    extra: Optional[Dict[str, object]] = None,
    enabled: bool = True,
) -> None:
    details = {
        "model_path": model_path,
        "kind": kind,
        "batch_size": batch_size,
        "input_shape": input_shape,
        "output_shape": output_shape,
    }
    if extra:
        details.update(extra)
    log_run_event("Model loaded", details, enabled=enabled)
