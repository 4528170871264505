"""End-to-end tests for the Parser pipeline on the fake backend."""
import numpy as np
import pytest

from tests.fakes import make_plan, write_graph
from trt_parser import buffers as buffers_module
from trt_parser.config import build_config
from trt_parser.errors import (
    BindingError,
    ConfigurationError,
    DeserializationError,
    EmptyImageError,
    InferenceError,
    ProfileError,
    UnsupportedFormatError,
)
from trt_parser.logger import DiagnosticLogger
from trt_parser.model import ModelKind
from trt_parser.parser import Parser


@pytest.fixture
def tracked_buffers(monkeypatch):
    """Record every DeviceBuffer allocated by the pipeline."""
    created = []

    class TrackedBuffer(buffers_module.DeviceBuffer):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            created.append(self)

    monkeypatch.setattr(buffers_module, 'DeviceBuffer', TrackedBuffer)
    return created


def _expected_output(mean, count):
    return np.arange(1, count + 1, dtype=np.float32) * np.float32(mean)


class TestConstruction:

    def test_unsupported_format(self, fake_trt, tmp_path, cpu_config):
        path = tmp_path / 'model.xyz'
        path.write_bytes(b'data')
        with pytest.raises(UnsupportedFormatError):
            Parser(str(path), config=cpu_config)
        assert not fake_trt.state.builders
        assert not fake_trt.state.contexts

    def test_build_from_graph(self, fake_trt, graph_path, cpu_config):
        parser = Parser(graph_path, config=cpu_config, diagnostics=DiagnosticLogger())
        assert parser.source.kind is ModelKind.GRAPH
        assert parser.input_binding.name == 'input_1'
        assert parser.input_binding.shape == (1, 128, 128, 3)
        assert parser.output_binding.shape == (1, 10)
        assert len(fake_trt.state.contexts) == 1

    def test_load_from_plan(self, fake_trt, tmp_path, cpu_config):
        path = tmp_path / 'model.trt'
        path.write_bytes(make_plan([('input_1', (1, 128, 128, 3))], [('output', (1, 10))]))
        parser = Parser(str(path), config=cpu_config)
        assert parser.source.kind is ModelKind.PLAN
        assert not fake_trt.state.builders

    def test_corrupt_plan(self, fake_trt, tmp_path, cpu_config):
        data = make_plan([('input_1', (1, 128, 128, 3))], [('output', (1, 10))])
        path = tmp_path / 'model.trt'
        path.write_bytes(data[:20])
        with pytest.raises(DeserializationError):
            Parser(str(path), config=cpu_config)

    @pytest.mark.parametrize('batch_size', [0, -1, 1.5])
    def test_invalid_batch_size(self, fake_trt, graph_path, cpu_config, batch_size):
        with pytest.raises(ConfigurationError):
            Parser(graph_path, batch_size=batch_size, config=cpu_config)

    def test_host_device_warns(self, fake_trt, graph_path, cpu_config, caplog):
        with caplog.at_level('WARNING', logger='trt_parser.parser'):
            Parser(graph_path, config=cpu_config)
        assert 'host memory' in caplog.text

    def test_engine_path(self, fake_trt, graph_path, cpu_config):
        parser = Parser(graph_path, config=cpu_config)
        assert parser.engine_path == graph_path[:-len('.onnx')] + '.trt'


class TestInference:

    def test_output(self, fake_trt, graph_path, cpu_config, image):
        parser = Parser(graph_path, config=cpu_config)
        result = parser.inference(image)
        assert result.shape == (10,)
        assert result.dtype == np.float32
        assert fake_trt.state.contexts[0].calls == 1

    def test_output_reflects_preprocessed_input(self, fake_trt, graph_path, cpu_config):
        parser = Parser(graph_path, config=cpu_config)
        # A constant image normalizes to one constant per channel plane
        image = np.full((128, 128, 3), 255, dtype=np.uint8)
        per_channel = [(1.0 - m) / s for m, s in zip(cpu_config['mean'], cpu_config['std'])]
        expected = _expected_output(np.mean(per_channel, dtype=np.float32), 10)
        np.testing.assert_allclose(parser.inference(image), expected, rtol=1e-4)

    def test_batch_size_scales_output(self, fake_trt, graph_path, cpu_config, image):
        parser = Parser(graph_path, batch_size=2, config=cpu_config)
        assert parser.output_binding.shape == (1, 10)
        assert parser.inference(image).shape == (20,)

    def test_buffers_released(self, fake_trt, graph_path, cpu_config, image, tracked_buffers):
        parser = Parser(graph_path, config=cpu_config)
        parser.inference(image)
        parser.inference(image)
        assert len(tracked_buffers) == 4
        assert all(b.freed for b in tracked_buffers)

    def test_extra_bindings_allocated(self, fake_trt, tmp_path, cpu_config, image, tracked_buffers):
        path = write_graph(tmp_path / 'two_out.onnx', [('input_1', (-1, 128, 128, 3))],
                           [('scores', (-1, 10)), ('boxes', (-1, 4))])
        parser = Parser(path, config=cpu_config)
        result = parser.inference(image)
        assert result.shape == (10,)
        assert [b.nbytes for b in tracked_buffers] == [49152 * 4, 40, 16]

    def test_missing_input_binding(self, fake_trt, tmp_path, cpu_config, image, tracked_buffers):
        path = tmp_path / 'no_input.trt'
        path.write_bytes(make_plan([], [('output', (1, 10))]))
        parser = Parser(str(path), config=cpu_config)
        for _ in range(3):
            with pytest.raises(BindingError):
                parser.inference(image)
        assert fake_trt.state.contexts[0].calls == 0
        assert len(tracked_buffers) == 3
        assert all(b.freed for b in tracked_buffers)

    def test_missing_output_binding(self, fake_trt, tmp_path, cpu_config, image, tracked_buffers):
        path = tmp_path / 'no_output.trt'
        path.write_bytes(make_plan([('input_1', (1, 128, 128, 3))], []))
        parser = Parser(str(path), config=cpu_config)
        with pytest.raises(BindingError):
            parser.inference(image)
        assert fake_trt.state.contexts[0].calls == 0
        assert all(b.freed for b in tracked_buffers)

    @pytest.mark.parametrize('bad', [None, np.zeros((0, 0, 3), dtype=np.uint8)])
    def test_empty_image(self, fake_trt, graph_path, cpu_config, tracked_buffers, bad):
        parser = Parser(graph_path, config=cpu_config)
        with pytest.raises(EmptyImageError):
            parser.inference(bad)
        assert fake_trt.state.contexts[0].calls == 0
        assert all(b.freed for b in tracked_buffers)

    def test_execution_failure(self, fake_trt, graph_path, cpu_config, image, tracked_buffers):
        parser = Parser(graph_path, config=cpu_config)
        fake_trt.state.execute_ok = False
        with pytest.raises(InferenceError):
            parser.inference(image)
        assert all(b.freed for b in tracked_buffers)


class TestExportRoundTrip:

    def test_export_then_load(self, fake_trt, graph_path, cpu_config, image):
        built = Parser(graph_path, config=cpu_config)
        expected = built.inference(image)
        assert built.export()

        loaded = Parser(built.engine_path, config=cpu_config)
        np.testing.assert_allclose(loaded.inference(image), expected, atol=1e-5)
        assert loaded.bindings == built.bindings

    def test_export_failure(self, fake_trt, graph_path, cpu_config):
        parser = Parser(graph_path, config=cpu_config)
        fake_trt.state.serialize_fails = True
        assert parser.export() is False


class TestLoadOrBuild:

    def test_builds_and_exports(self, fake_trt, graph_path, cpu_config):
        parser = Parser.load_or_build(graph_path, config=cpu_config)
        assert parser.source.kind is ModelKind.GRAPH
        assert len(fake_trt.state.builders) == 1
        with open(parser.engine_path, 'rb') as f:
            assert f.read().startswith(b'FAKEPLAN')

    def test_reuses_plan(self, fake_trt, graph_path, cpu_config):
        Parser.load_or_build(graph_path, config=cpu_config)
        parser = Parser.load_or_build(graph_path, config=cpu_config)
        assert parser.source.kind is ModelKind.PLAN
        assert len(fake_trt.state.builders) == 1

    def test_rebuilds_corrupt_plan(self, fake_trt, graph_path, cpu_config):
        engine_path = graph_path[:-len('.onnx')] + '.trt'
        with open(engine_path, 'wb') as f:
            f.write(b'not a plan')
        parser = Parser.load_or_build(graph_path, config=cpu_config)
        assert parser.source.kind is ModelKind.GRAPH
        with open(engine_path, 'rb') as f:
            assert f.read().startswith(b'FAKEPLAN')


    def test_rebuilds_plan_for_other_batch_size(self, fake_trt, graph_path, cpu_config, image):
        Parser.load_or_build(graph_path, batch_size=1, config=cpu_config)
        parser = Parser.load_or_build(graph_path, batch_size=2, config=cpu_config)
        assert parser.source.kind is ModelKind.GRAPH
        assert len(fake_trt.state.builders) == 2
        assert parser.inference(image).shape == (20,)

        reused = Parser.load_or_build(graph_path, batch_size=2, config=cpu_config)
        assert reused.source.kind is ModelKind.PLAN
        assert len(fake_trt.state.builders) == 2

    def test_plan_for_other_batch_size_rejected_directly(self, fake_trt, graph_path, cpu_config):
        Parser.load_or_build(graph_path, batch_size=1, config=cpu_config)
        with pytest.raises(ProfileError):
            Parser(graph_path[:-len('.onnx')] + '.trt', batch_size=2, config=cpu_config)


class TestPerformanceInfo:

    def test_warmup_counts(self, fake_trt, graph_path, cpu_config):
        parser = Parser(graph_path, config=cpu_config)
        parser.warmup(3)
        info = parser.get_performance_info()
        assert info['inference_count'] == 3
        assert info['avg_inference_time'] >= 0.0
        parser.reset_performance_stats()
        assert parser.get_performance_info()['inference_count'] == 0

    def test_failed_call_not_counted(self, fake_trt, graph_path, cpu_config):
        parser = Parser(graph_path, config=cpu_config)
        with pytest.raises(EmptyImageError):
            parser.inference(None)
        assert parser.get_performance_info()['inference_count'] == 0


class TestRunLog:

    def test_model_logged(self, fake_trt, graph_path, tmp_path, monkeypatch):
        from trt_parser import utils

        log_path = tmp_path / 'run_log.txt'
        monkeypatch.setattr(utils, 'RUN_LOG_FILE', str(log_path))
        Parser(graph_path, config=build_config({'device': 'cpu', 'run_log': True}))
        text = log_path.read_text(encoding='utf-8')
        assert 'Model loaded' in text
        assert 'kind: graph' in text
