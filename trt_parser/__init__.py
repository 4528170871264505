from .buffers import DeviceBuffer, allocate_buffers, resolve_bindings
from .builder import build_engine, inspect_onnx
from .config import DEFAULT_CONFIG, build_config, load_config, save_config
from .errors import (
    BindingError,
    ConfigurationError,
    DeserializationError,
    EmptyImageError,
    EngineBuildError,
    GraphParseError,
    InferenceError,
    ParserError,
    ProfileError,
    SerializationError,
    UnsupportedFormatError,
)
from .exporter import export_engine
from .loader import load_engine
from .logger import DiagnosticLogger, get_default_logger
from .model import Binding, EngineHandle, ModelKind, ModelSource, OptimizationProfileSpec
from .parser import Parser
from .postprocess import postprocess_results
from .preprocess import preprocess_image
from .utils import VERSION, check_tensorrt_availability, element_count, get_size_by_dim

__version__ = VERSION

__all__ = [
    "Parser",
    "DiagnosticLogger",
    "get_default_logger",
    "build_engine",
    "inspect_onnx",
    "load_engine",
    "export_engine",
    "preprocess_image",
    "postprocess_results",
    "DeviceBuffer",
    "allocate_buffers",
    "resolve_bindings",
    "ModelKind",
    "ModelSource",
    "OptimizationProfileSpec",
    "Binding",
    "EngineHandle",
    "DEFAULT_CONFIG",
    "build_config",
    "load_config",
    "save_config",
    "element_count",
    "get_size_by_dim",
    "check_tensorrt_availability",
    "ParserError",
    "UnsupportedFormatError",
    "GraphParseError",
    "ProfileError",
    "EngineBuildError",
    "DeserializationError",
    "SerializationError",
    "BindingError",
    "EmptyImageError",
    "InferenceError",
    "ConfigurationError",
    "VERSION",
]
