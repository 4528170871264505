"""
Error types raised by the engine lifecycle.

Every error carries a message, optional fix suggestions and a context dict
that is rendered into the exception string. ``ParserError`` subclasses
``RuntimeError`` so callers that only catch ``RuntimeError`` keep working.
"""
from typing import Dict, List, Optional


class ParserError(RuntimeError):
    """Base class for all engine lifecycle errors."""

    def __init__(self, message: str, suggestions: Optional[List[str]] = None,
                 context: Optional[Dict[str, object]] = None):
        self.message = message
        self.suggestions = suggestions or []
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [self.message]
        if self.suggestions:
            lines.append('')
            lines.append('Suggestions:')
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f'  {i}. {suggestion}')
        if self.context:
            lines.append('')
            lines.append('Context:')
            for key, value in self.context.items():
                lines.append(f'  {key}: {value}')
        return '\n'.join(lines)


class UnsupportedFormatError(ParserError):
    """Model path has an extension that is neither a graph nor a plan."""

    def __init__(self, path: str, supported: Optional[List[str]] = None):
        self.path = path
        super().__init__(
            f'Cannot read {path}: unsupported model format',
            suggestions=[f'Use one of: {", ".join(supported)}'] if supported else None,
            context={'path': path},
        )


class GraphParseError(ParserError):
    """The graph file could not be parsed into a network definition."""

    def __init__(self, path: str, errors: Optional[List[str]] = None):
        self.path = path
        self.errors = list(errors or [])
        context = {'path': path}
        for i, err in enumerate(self.errors):
            context[f'error_{i}'] = err
        super().__init__(
            'Could not parse the model',
            suggestions=['Check that the file is a valid ONNX model',
                         'Re-export the model with a supported opset'],
            context=context,
        )


class ProfileError(ParserError):
    """Optimization profile shapes violate min <= opt <= max."""


class EngineBuildError(ParserError):
    """Compilation produced no plan."""


class DeserializationError(ParserError):
    """A serialized plan could not be turned back into an engine."""


class SerializationError(ParserError):
    """The in-memory plan could not be serialized."""


class BindingError(ParserError):
    """Engine bindings do not satisfy the one input / one output contract."""


class EmptyImageError(ParserError):
    """Inference was requested on an image without data."""

    def __init__(self, message: str = 'Cannot load input image'):
        super().__init__(message)


class InferenceError(ParserError):
    """The execution context reported a failed enqueue."""


class ConfigurationError(ParserError):
    """A configuration value is missing or out of range."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f'Invalid configuration "{key}": {message}', context={'key': key})
