"""
Engine Builder

Compiles an ONNX graph into a TensorRT plan with a fixed-shape optimization
profile, a bounded workspace and best-effort FP16.
"""
import logging
import os

from .config import build_config
from .errors import EngineBuildError, GraphParseError, ProfileError
from .logger import get_default_logger
from .model import EngineHandle, OptimizationProfileSpec
from .utils import import_tensorrt

logger = logging.getLogger(__name__)


def inspect_onnx(model_path):
    """
    Validate an ONNX file with ONNX Runtime and report its first input

    Returns:
        tuple: (input_name, input_shape)
    """
    import onnxruntime as ort

    try:
        sess = ort.InferenceSession(model_path, providers=['CPUExecutionProvider'])
    except Exception as e:
        raise GraphParseError(model_path, [f'Model validation failed: {e}']) from e
    input_name = sess.get_inputs()[0].name
    input_shape = sess.get_inputs()[0].shape
    logger.info('ONNX input: name=%s, shape=%s', input_name, input_shape)
    return input_name, input_shape


def default_profile(config, batch_size):
    shape = list(config['input_shape'])
    shape[0] = batch_size
    return OptimizationProfileSpec.fixed(config['input_name'], shape)


def _network_flags(trt):
    # Explicit batch is implicit (and the flag deprecated) on TensorRT 10
    flag = getattr(trt.NetworkDefinitionCreationFlag, 'EXPLICIT_BATCH', None)
    return 0 if flag is None else 1 << int(flag)


def _set_workspace(trt, builder_config, workspace_bytes):
    try:
        builder_config.set_memory_pool_limit(trt.MemoryPoolType.WORKSPACE, workspace_bytes)
    except AttributeError:
        builder_config.max_workspace_size = workspace_bytes
        logger.debug('Using legacy API for workspace')


def _supports_fp16(builder):
    fast_fp16 = getattr(builder, 'platform_has_fast_fp16', None)
    if fast_fp16 is not None:
        return bool(fast_fp16)
    import torch

    capability = torch.cuda.get_device_capability(0)
    return capability[0] >= 6


def _enable_fp16(trt, builder, builder_config):
    try:
        if not _supports_fp16(builder):
            logger.info('Platform has no fast FP16, building FP32 engine')
            return False
        builder_config.set_flag(trt.BuilderFlag.FP16)
    except (AttributeError, RuntimeError) as e:
        logger.warning('Cannot enable FP16, continuing with FP32: %s', e)
        return False
    logger.info('FP16 enabled')
    return True


def _network_input_names(network):
    return [network.get_input(i).name for i in range(network.num_inputs)]


def build_engine(model_path, diagnostics=None, config=None, batch_size=1, profile=None):
    """
    Build a TensorRT engine from an ONNX file

    Args:
        model_path: ONNX model path
        diagnostics: DiagnosticLogger receiving backend messages
        config: Configuration dict (defaults filled in)
        batch_size: Batch dimension of the optimization profile
        profile: OptimizationProfileSpec overriding the configured shape

    Returns:
        EngineHandle: engine, execution context and runtime

    Raises:
        FileNotFoundError: model file does not exist
        GraphParseError: ONNX parsing failed
        ProfileError: profile shapes are inconsistent or name no network input
        EngineBuildError: compilation produced no plan
    """
    trt = import_tensorrt()
    config = build_config(config)
    diagnostics = diagnostics or get_default_logger()

    if not os.path.isfile(model_path):
        raise FileNotFoundError(f'Model file not found: {model_path}')
    if config['validate_onnx']:
        inspect_onnx(model_path)

    if profile is None:
        profile = default_profile(config, batch_size)
    profile.validate()

    trt_logger = diagnostics.as_trt_logger()
    builder = trt.Builder(trt_logger)
    network = builder.create_network(_network_flags(trt))
    parser = trt.OnnxParser(network, trt_logger)

    logger.info('Parsing ONNX model %s', model_path)
    if not parser.parse_from_file(model_path):
        errors = [str(parser.get_error(i)) for i in range(parser.num_errors)]
        raise GraphParseError(model_path, errors)

    input_names = _network_input_names(network)
    if profile.input_name not in input_names:
        raise ProfileError(f'Profile input "{profile.input_name}" is not a network input',
                           context={'network_inputs': input_names})

    builder_config = builder.create_builder_config()
    trt_profile = builder.create_optimization_profile()
    trt_profile.set_shape(profile.input_name, profile.min, profile.opt, profile.max)
    builder_config.add_optimization_profile(trt_profile)
    logger.info('Profile %s - min: %s, opt: %s, max: %s',
                profile.input_name, profile.min, profile.opt, profile.max)

    workspace_bytes = int(config['workspace_mb']) * 1024 * 1024
    _set_workspace(trt, builder_config, workspace_bytes)

    level = config['builder_optimization_level']
    if level is not None:
        builder_config.builder_optimization_level = level

    if config['use_fp16']:
        _enable_fp16(trt, builder, builder_config)

    logger.info('Building engine...')
    serialized = builder.build_serialized_network(network, builder_config)
    if serialized is None:
        raise EngineBuildError('TensorRT engine build failed', context={'model_path': model_path})

    runtime = trt.Runtime(trt_logger)
    engine = runtime.deserialize_cuda_engine(serialized)
    if engine is None:
        raise EngineBuildError('Built engine could not be instantiated',
                               context={'model_path': model_path})
    context = engine.create_execution_context()
    if context is None:
        raise EngineBuildError('Cannot create execution context', context={'model_path': model_path})
    logger.info('Engine built: %d IO tensors', engine.num_io_tensors)
    return EngineHandle(engine, context, runtime)
