"""Tests for run_pipeline.cli module."""

from unittest.mock import MagicMock, patch

from run_pipeline.cli import build_parser, main, selected_steps


class TestSelectedSteps:
    def test_update_feeds(self) -> None:
        args = build_parser().parse_args(["--update-feeds"])
        assert selected_steps(args) == [1, 2, 3, 4, 5]

    def test_generate_static(self) -> None:
        args = build_parser().parse_args(["--generate-static"])
        assert selected_steps(args) == [6]

    def test_individual_steps_are_ordered(self) -> None:
        args = build_parser().parse_args(["--step4", "--step2"])
        assert selected_steps(args) == [2, 4]

    def test_all(self) -> None:
        assert selected_steps(build_parser().parse_args(["--all"])) == [1, 2, 3, 4, 5, 6]


class TestMain:
    @patch("run_pipeline.cli.get_settings")
    def test_no_flags_is_a_no_op(self, mock_get_settings, capsys) -> None:
        assert main([]) == 0
        mock_get_settings.assert_not_called()
        assert "usage" in capsys.readouterr().out

    @patch("run_pipeline.cli.run_steps")
    @patch("run_pipeline.cli.build_collaborators")
    @patch("run_pipeline.cli.build_source_provider")
    @patch("run_pipeline.cli.build_pipeline_store")
    @patch("run_pipeline.cli.get_settings")
    def test_runs_selected_steps(
        self, mock_get_settings, mock_build_store, mock_provider, mock_collaborators, mock_run_steps
    ) -> None:
        mock_get_settings.return_value.default_account_id = "default"
        store = MagicMock()
        mock_build_store.return_value = store

        assert main(["--step1", "--account-id", "acme", "--store", "db", "--run-id", "r1"]) == 0

        mock_build_store.assert_called_once_with(
            mock_get_settings.return_value, "acme", backend="db", pipeline_run_id="r1"
        )
        ctx, steps = mock_run_steps.call_args.args
        assert ctx.account_id == "acme"
        assert steps == [1]
        store.__exit__.assert_called_once()

    @patch("run_pipeline.cli.run_steps")
    @patch("run_pipeline.cli.build_collaborators")
    @patch("run_pipeline.cli.build_source_provider")
    @patch("run_pipeline.cli.build_pipeline_store")
    @patch("run_pipeline.cli.get_settings")
    def test_stage_error_exits_non_zero(
        self, mock_get_settings, mock_build_store, mock_provider, mock_collaborators, mock_run_steps
    ) -> None:
        mock_get_settings.return_value.default_account_id = "default"
        store = MagicMock()
        store.__exit__.return_value = None
        mock_build_store.return_value = store
        mock_run_steps.side_effect = RuntimeError("database down")

        assert main(["--all"]) == 1
        exc_type = store.__exit__.call_args.args[0]
        assert exc_type is RuntimeError
