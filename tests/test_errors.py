"""Tests for the error hierarchy."""
import pytest

from trt_parser.errors import (
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


class TestParserError:

    def test_message_only(self):
        error = ParserError('boom')
        assert str(error) == 'boom'

    def test_suggestions_and_context(self):
        error = ParserError('boom', suggestions=['Fix A'], context={'path': 'x'})
        msg = str(error)
        assert 'Suggestions:' in msg
        assert '1. Fix A' in msg
        assert 'path: x' in msg

    def test_is_runtime_error(self):
        with pytest.raises(RuntimeError):
            raise ParserError('boom')

    @pytest.mark.parametrize('cls', [
        BindingError, DeserializationError, EngineBuildError, InferenceError,
        ProfileError, SerializationError,
    ])
    def test_subclasses(self, cls):
        assert issubclass(cls, ParserError)


class TestSpecificErrors:

    def test_unsupported_format(self):
        error = UnsupportedFormatError('model.xyz', ['.onnx', '.trt'])
        assert error.path == 'model.xyz'
        assert 'Cannot read model.xyz' in str(error)
        assert '.onnx, .trt' in str(error)

    def test_graph_parse_errors_listed(self):
        error = GraphParseError('m.onnx', ['bad node', 'bad opset'])
        assert error.errors == ['bad node', 'bad opset']
        assert 'error_1: bad opset' in str(error)

    def test_empty_image_default_message(self):
        assert 'Cannot load input image' in str(EmptyImageError())

    def test_configuration_key(self):
        error = ConfigurationError('workspace_mb', 'must be positive')
        assert error.key == 'workspace_mb'
        assert '"workspace_mb"' in str(error)
