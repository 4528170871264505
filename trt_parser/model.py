import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple, Tuple

from .errors import ProfileError, UnsupportedFormatError

GRAPH_EXTENSIONS = ('.onnx',)
PLAN_EXTENSIONS = ('.trt', '.engine', '.plan')

# Extension written by the exporter
PLAN_EXTENSION = '.trt'


class ModelKind(Enum):
    GRAPH = 'graph'
    PLAN = 'plan'


@dataclass(frozen=True)
class ModelSource:
    """Model file path and whether it holds a graph or a compiled plan."""

    path: str
    kind: ModelKind

    @classmethod
    def from_path(cls, path):
        ext = os.path.splitext(str(path))[1].lower()
        if ext in GRAPH_EXTENSIONS:
            return cls(str(path), ModelKind.GRAPH)
        if ext in PLAN_EXTENSIONS:
            return cls(str(path), ModelKind.PLAN)
        raise UnsupportedFormatError(str(path), list(GRAPH_EXTENSIONS + PLAN_EXTENSIONS))

    @property
    def engine_path(self):
        """Sibling path with the compiled-plan extension."""
        return os.path.splitext(self.path)[0] + PLAN_EXTENSION


@dataclass(frozen=True)
class OptimizationProfileSpec:
    """Min/opt/max input shapes registered for one named input."""

    input_name: str
    min: Tuple[int, ...]
    opt: Tuple[int, ...]
    max: Tuple[int, ...]

    @classmethod
    def fixed(cls, input_name, shape):
        shape = tuple(int(d) for d in shape)
        return cls(input_name, shape, shape, shape)

    def validate(self):
        if not (len(self.min) == len(self.opt) == len(self.max)):
            raise ProfileError(
                f'Profile shapes for "{self.input_name}" have different ranks',
                context={'min': self.min, 'opt': self.opt, 'max': self.max})
        for lo, mid, hi in zip(self.min, self.opt, self.max):
            if lo < 0 or not lo <= mid <= hi:
                raise ProfileError(
                    f'Profile for "{self.input_name}" must satisfy min <= opt <= max',
                    context={'min': self.min, 'opt': self.opt, 'max': self.max})
        return self


@dataclass(frozen=True)
class Binding:
    """An input or output tensor slot of a compiled plan."""

    index: int
    name: str
    is_input: bool
    shape: Tuple[int, ...]


class EngineHandle(NamedTuple):
    engine: Any
    context: Any
    # Kept so the runtime outlives the engine it deserialized
    runtime: Any = None
