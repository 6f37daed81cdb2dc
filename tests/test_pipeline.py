"""Tests for logpipe/pipeline.py"""

from datetime import datetime, timezone

import pytest
import yaml

from sample_logs import LOG_LINE, MALFORMED_LINE
from logpipe.json_stage import (
    MALFORMED_DROPPED_METRIC,
    CouldNotCompileExpressionError,
    ExpressionsRequiredError,
)
from logpipe.models import new_entry
from logpipe.pipeline import Pipeline, PipelineError

SINGLE_STAGE_WITHOUT_SOURCE = """
pipeline_stages:
- json:
    expressions:
      out:  message
      app:
      nested:
      duration:
      unknown:
"""

MULTI_STAGE_WITH_SOURCE = """
pipeline_stages:
- json:
    expressions:
      extra:
- json:
    expressions:
      user:
    source: extra
"""


def _pipeline(text, registry=None) -> Pipeline:
    return Pipeline.from_config(yaml.safe_load(text)["pipeline_stages"], registry)


class TestPipelineJSON:
    def test_single_stage_without_source(self):
        out = _pipeline(SINGLE_STAGE_WITHOUT_SOURCE).process_line(LOG_LINE)
        assert out.extracted == {
            "out": "this is a log line",
            "app": "loki",
            "nested": '{"child":"value"}',
            "duration": 125.0,
            "unknown": None,
        }

    def test_two_stages_with_source(self):
        out = _pipeline(MULTI_STAGE_WITH_SOURCE).process_line(LOG_LINE)
        assert out.extracted == {
            "extra": '{"user":"marco"}',
            "user": "marco",
        }

    def test_later_stage_overwrites_key(self):
        pipeline = Pipeline.from_config([
            {"json": {"expressions": {"value": "a"}}},
            {"json": {"expressions": {"value": "b"}}},
        ])
        assert pipeline.process_line('{"a": "first", "b": "second"}').extracted == {
            "value": "second"
        }
        assert pipeline.process_line('{"a": "first"}').extracted == {"value": None}

    def test_dropped_line_returns_none(self, registry):
        pipeline = Pipeline.from_config(
            [{"json": {"expressions": {"a": ""}, "drop_malformed": True}}], registry
        )
        assert pipeline.process_line(MALFORMED_LINE) is None
        assert registry.snapshot()[MALFORMED_DROPPED_METRIC] == 1

    def test_dropped_entry_skips_later_stages(self):
        pipeline = Pipeline.from_config([
            {"json": {"expressions": {"a": ""}, "drop_malformed": True}},
            {"json": {"expressions": {"b": ""}}},
        ])
        out = pipeline.run([new_entry('{"a": 1, "b": 2}'), new_entry("bad"), new_entry('{"b": 3}')])
        assert [e.extracted for e in out] == [
            {"a": 1.0, "b": 2.0},
            {"a": None, "b": 3.0},
        ]

    def test_process_line_keeps_labels_and_timestamp(self):
        ts = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        out = _pipeline(MULTI_STAGE_WITH_SOURCE).process_line(
            LOG_LINE, labels={"job": "app"}, timestamp=ts
        )
        assert out.labels == {"job": "app"}
        assert out.timestamp == ts
        assert out.line == LOG_LINE

    def test_len(self):
        assert len(_pipeline(MULTI_STAGE_WITH_SOURCE)) == 2

    def test_empty_pipeline_passes_through(self):
        entry = new_entry("anything")
        assert Pipeline([]).run([entry]) == [entry]


class TestPipelineConfigErrors:
    def test_not_a_list(self):
        with pytest.raises(PipelineError):
            Pipeline.from_config({"json": {}})

    def test_string_is_not_a_list(self):
        with pytest.raises(PipelineError):
            Pipeline.from_config("json")

    def test_stage_with_two_keys(self):
        with pytest.raises(PipelineError):
            Pipeline.from_config([{"json": {"expressions": {"a": ""}}, "regex": {}}])

    def test_stage_not_a_mapping(self):
        with pytest.raises(PipelineError):
            Pipeline.from_config(["json"])

    def test_unknown_stage_type(self):
        with pytest.raises(PipelineError, match="unknown stage type 'regex'"):
            Pipeline.from_config([{"regex": {"expression": ".*"}}])

    def test_stage_config_errors_propagate(self):
        with pytest.raises(ExpressionsRequiredError):
            Pipeline.from_config([{"json": None}])
        with pytest.raises(CouldNotCompileExpressionError):
            Pipeline.from_config([
                {"json": {"expressions": {"a": ""}}},
                {"json": {"expressions": {"b": "x#y"}}},
            ])
