import copy
import json
import logging
import os
import re

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE = "cfg.json"

DEFAULT_CONFIG = {
    "input_name": "input_1",
    "input_shape": [1, 128, 128, 3],
    "input_size": [128, 128],
    "mean": [0.485, 0.456, 0.406],
    "std": [0.229, 0.224, 0.225],
    "workspace_mb": 1024,
    "use_fp16": True,
    "builder_optimization_level": None,
    # "cpu" only works with backends that run on host pointers (the unit test fake)
    "device": "cuda:0",
    "validate_onnx": False,
    "run_log": False,
}


def default_config():
    return copy.deepcopy(DEFAULT_CONFIG)


def save_config(config, path=CONFIG_FILE):
    """Write configuration to ``path`` as pretty-printed JSON."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, ensure_ascii=False, indent=2)
        logger.info("Configuration saved to %s", path)
        return True
    except OSError as e:
        logger.error("Configuration save failed: %s", e)
        return False


def load_config(path=CONFIG_FILE):
    """
    Load configuration from a JSON file and fill in defaults

    A missing file yields the default configuration, which is written back
    so it can be edited. An unreadable file falls back to defaults too.

    Args:
        path: Configuration file path

    Returns:
        dict: Complete, validated configuration
    """
    config = None
    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load %s: %s", path, e)
    if config is None:
        logger.info("%s not found or invalid, generating default configuration.", path)
        config = default_config()
        save_config(config, path)
    return build_config(config)


def build_config(config=None):
    """
    Fill missing keys with defaults and validate values

    Args:
        config: Partial configuration dict or None

    Returns:
        dict: New configuration dict; the argument is not modified
    """
    config = copy.deepcopy(config) if config else {}
    if not isinstance(config, dict):
        raise ConfigurationError("config", "must be a JSON object")
    if "input_name" not in config:
        config["input_name"] = DEFAULT_CONFIG["input_name"]
    if "input_shape" not in config:
        config["input_shape"] = list(DEFAULT_CONFIG["input_shape"])
    if "input_size" not in config:
        config["input_size"] = list(DEFAULT_CONFIG["input_size"])
    if "mean" not in config:
        config["mean"] = list(DEFAULT_CONFIG["mean"])
    if "std" not in config:
        config["std"] = list(DEFAULT_CONFIG["std"])
    if "workspace_mb" not in config:
        config["workspace_mb"] = DEFAULT_CONFIG["workspace_mb"]
    if "use_fp16" not in config:
        config["use_fp16"] = DEFAULT_CONFIG["use_fp16"]
    if "builder_optimization_level" not in config:
        config["builder_optimization_level"] = None
    if "device" not in config:
        config["device"] = DEFAULT_CONFIG["device"]
    if "validate_onnx" not in config:
        config["validate_onnx"] = False
    if "run_log" not in config:
        config["run_log"] = False
    _validate(config)
    return config


def _validate(config):
    if not isinstance(config["input_name"], str) or not config["input_name"]:
        raise ConfigurationError("input_name", "must be a non-empty string")
    shape = config["input_shape"]
    if not isinstance(shape, (list, tuple)) or not shape:
        raise ConfigurationError("input_shape", "must be a non-empty list of dimensions")
    if any(not isinstance(d, int) or d <= 0 for d in shape):
        raise ConfigurationError("input_shape", f"dimensions must be positive integers, got {shape}")
    size = config["input_size"]
    if not isinstance(size, (list, tuple)) or len(size) != 2 or any(
            not isinstance(d, int) or d <= 0 for d in size):
        raise ConfigurationError("input_size", f"expected [height, width], got {size}")
    for key in ("mean", "std"):
        values = config[key]
        if not isinstance(values, (list, tuple)) or len(values) != 3:
            raise ConfigurationError(key, f"expected 3 per-channel values, got {values}")
    if any(float(s) == 0.0 for s in config["std"]):
        raise ConfigurationError("std", "values must be non-zero")
    if not isinstance(config["workspace_mb"], int) or config["workspace_mb"] <= 0:
        raise ConfigurationError("workspace_mb", "must be a positive integer")
    level = config["builder_optimization_level"]
    if level is not None and (not isinstance(level, int) or not 0 <= level <= 5):
        raise ConfigurationError("builder_optimization_level", "must be null or 0~5")
    device = config["device"]
    if not isinstance(device, str) or not re.fullmatch(r"cpu|cuda(:\d+)?", device):
        raise ConfigurationError("device", f"expected \"cuda\", \"cuda:N\" or \"cpu\", got {device}")
