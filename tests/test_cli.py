"""Tests for the CLI entry point: exit codes, output file, dry-run framing."""

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from codecontext.cli import frame_prompt, main
from codecontext.core.errors import ConfigurationError, DispatchFailure, RateLimitReached
from codecontext.schemas.pipeline import PipelineResult, Usage


def _run_with(result=None, error=None, argv=None):
    coordinator = MagicMock()
    if error is not None:
        coordinator.run.side_effect = error
    else:
        coordinator.run.return_value = result
    with patch("codecontext.cli.load_config", return_value=MagicMock()), \
            patch("codecontext.cli.build_coordinator", return_value=coordinator):
        code = main(argv)
    return code, coordinator


class TestExitCodes:
    def test_help_exits_zero(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--help"]) == 0
        assert "--dry-run" in capsys.readouterr().out

    def test_no_query_shows_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "usage:" in capsys.readouterr().out

    def test_unknown_flag_is_error(self) -> None:
        assert main(["--nope", "q"]) == 1

    def test_cancelled_exits_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, _ = _run_with(PipelineResult(cancelled=True, reason="Cancelled by user"), argv=["add a method"])
        assert code == 1
        assert "Cancelled" in capsys.readouterr().out

    def test_weekly_rate_limit_message(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Rate limits get a dedicated remediation message, not the generic error text."""
        code, _ = _run_with(error=RateLimitReached("weekly cap", weekly=True), argv=["--quick", "q"])
        err = capsys.readouterr().err
        assert code == 1
        assert "WEEKLY_LIMIT_REACHED" in err
        assert "reset" in err
        assert not err.startswith("Error:")

    def test_configuration_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, _ = _run_with(error=ConfigurationError("ANTHROPIC_API_KEY is not set"), argv=["q"])
        assert code == 1
        assert "Configuration error: ANTHROPIC_API_KEY is not set" in capsys.readouterr().err

    def test_dispatch_failure(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, _ = _run_with(error=DispatchFailure("Model API error 500: boom", status_code=500), argv=["q"])
        assert code == 1
        assert "API error" in capsys.readouterr().err

    def test_unexpected_error_verbose(self, capsys: pytest.CaptureFixture[str], caplog: pytest.LogCaptureFixture) -> None:
        """--verbose logs the full traceback in addition to the one-line message."""
        with caplog.at_level(logging.ERROR, logger="codecontext.cli"):
            code, _ = _run_with(error=RuntimeError("kaput"), argv=["--verbose", "q"])
        assert code == 1
        assert "Error: kaput" in capsys.readouterr().err
        records = [r for r in caplog.records if r.name == "codecontext.cli"]
        assert records and records[-1].exc_info is not None
        assert records[-1].exc_info[0] is RuntimeError
        assert "Traceback" in caplog.text

    def test_unexpected_error_quiet_has_no_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="codecontext.cli"):
            code, _ = _run_with(error=RuntimeError("kaput"), argv=["q"])
        assert code == 1
        assert not [r for r in caplog.records if r.name == "codecontext.cli"]

    @pytest.mark.parametrize("budget", ["0", "-1", "many"])
    def test_max_methods_below_one_is_rejected(self, budget: str, capsys: pytest.CaptureFixture[str]) -> None:
        code, coordinator = _run_with(PipelineResult(success=True), argv=["--max-methods", budget, "q"])
        assert code == 1
        assert "--max-methods" in capsys.readouterr().err
        coordinator.run.assert_not_called()

    def test_max_methods_passed_through(self) -> None:
        code, coordinator = _run_with(PipelineResult(success=True), argv=["--quick", "--max-methods", "2", "q"])
        assert code == 0
        assert coordinator.run.call_args.kwargs["max_methods"] == 2


class TestOutput:
    def test_response_written_to_file(self, tmp_path: Path) -> None:
        out = tmp_path / "answer.md"
        result = PipelineResult(success=True, response="Use width * height.", usage=Usage(input_tokens=10, output_tokens=5))
        code, coordinator = _run_with(result, argv=["--quick", "--output", str(out), "add area"])
        assert code == 0
        assert out.read_text(encoding="utf-8") == "# Query\nadd area\n\n# Response\nUse width * height."
        kwargs = coordinator.run.call_args.kwargs
        assert kwargs["quick"] is True and kwargs["dry_run"] is False

    def test_dry_run_writes_raw_prompt_and_frames_it(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        out = tmp_path / "prompt.md"
        prompt = "# Context\nCategory: general\n\n# Request\nadd area"
        result = PipelineResult(success=True, dry_run=True, prompt=prompt, tokens_estimate=12)
        code, _ = _run_with(result, argv=["--dry-run", "--output", str(out), "add area"])
        assert code == 0
        assert out.read_text(encoding="utf-8") == prompt
        printed = capsys.readouterr().out
        assert "┌" + "─" * 76 + "┐" in printed
        assert "Estimated tokens: 12" in printed


class TestFramePrompt:
    def test_fixed_width_and_truncation(self) -> None:
        framed = frame_prompt("short\n" + "x" * 200)
        lines = framed.splitlines()
        assert all(len(line) == 78 for line in lines)
        assert lines[2].endswith("… │")
