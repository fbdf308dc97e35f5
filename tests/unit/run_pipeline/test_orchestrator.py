"""Tests for run_pipeline.orchestrator module."""

from unittest.mock import MagicMock, Mock, patch

from common.config import Settings
from fetch_sources.sources import YamlSourceConfigProvider
from run_pipeline.orchestrator import STAGES, build_collaborators, build_source_provider, run_steps


class TestRunSteps:
    def test_marks_completed_steps_in_order(self) -> None:
        calls = []
        ctx = MagicMock()
        ctx.store.mark_step_completed.side_effect = lambda step: calls.append(("done", step))
        stages = {
            1: ("one", lambda c: calls.append(("run", 1)) or "cache"),
            2: ("two", lambda c: calls.append(("run", 2)) or None),
            3: ("three", lambda c: calls.append(("run", 3)) or "cache"),
        }

        with patch.dict(STAGES, stages, clear=True):
            run_steps(ctx, [3, 1, 2])

        assert calls == [("run", 1), ("done", 1), ("run", 2), ("run", 3), ("done", 3)]


class TestBuilders:
    def test_file_backend_uses_yaml_sources(self) -> None:
        provider = build_source_provider(Settings(pipeline_store="file"))
        assert isinstance(provider, YamlSourceConfigProvider)

    def test_collaborators_without_keys_fail_soft(self) -> None:
        collaborators = build_collaborators(Settings())
        assert collaborators.search("anything") == []
        assert collaborators.generate_report("Tech", [Mock()]) is None
        assert collaborators.analyze_sentiment("text") is False
