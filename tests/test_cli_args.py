"""Tests for CLI argument parsing and handling."""

import argparse
import logging
from io import StringIO
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from local_dictation.main import (
    build_settings,
    create_argument_parser,
    handle_arguments,
    list_models,
)
from local_dictation.speech_to_text.exceptions import ConfigurationError


def parse(*argv: str) -> argparse.Namespace:
    return create_argument_parser().parse_args(list(argv))


def handled_args(**overrides) -> Mock:
    args = Mock()
    args.verbose = False
    args.trace = False
    args.list_models = False
    args.noise_strength = None
    for name, value in overrides.items():
        setattr(args, name, value)
    return args


@pytest.mark.unit
class TestArgumentParser:
    """Test cases for argument parser creation."""

    def test_create_argument_parser_basic(self) -> None:
        parser = create_argument_parser()

        assert isinstance(parser, argparse.ArgumentParser)
        assert "Local Dictation" in parser.description

    def test_help_argument(self) -> None:
        """Test --help lists every option."""
        parser = create_argument_parser()

        with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
            with pytest.raises(SystemExit) as exc_info:
                parser.parse_args(["--help"])

            assert exc_info.value.code == 0
            help_output = mock_stdout.getvalue()
            for option in (
                "--config",
                "--model",
                "--list-models",
                "--no-noise-reduction",
                "--noise-strength",
                "--correct",
                "--llm-model",
                "--flush-delay",
                "--force-cpu",
                "--verbose",
                "--trace",
            ):
                assert option in help_output

    def test_no_arguments(self) -> None:
        args = parse()

        assert args.config is None
        assert args.model is None
        assert args.list_models is False
        assert args.correct is False
        assert args.noise_strength is None
        assert args.verbose is False

    def test_combined_arguments(self) -> None:
        args = parse("-v", "--model", "large-v3", "--noise-strength", "0.8", "--correct")

        assert args.verbose is True
        assert args.model == "large-v3"
        assert args.noise_strength == 0.8
        assert args.correct is True

    def test_invalid_argument(self) -> None:
        with patch("sys.stderr", new_callable=StringIO):
            with pytest.raises(SystemExit) as exc_info:
                parse("--no-such-flag")

        assert exc_info.value.code == 2


@pytest.mark.unit
class TestBuildSettings:
    """Test cases for merging command-line overrides into settings."""

    def test_defaults(self) -> None:
        settings = build_settings(parse())

        assert settings.asr_model == "cantonese-small"
        assert settings.noise_reduction.enabled is True
        assert settings.correction.enabled is False
        assert settings.device == "auto"

    def test_overrides(self) -> None:
        settings = build_settings(
            parse(
                "--model",
                "large-v3",
                "--no-noise-reduction",
                "--noise-strength",
                "1.5",
                "--flush-delay",
                "1.5",
                "--force-cpu",
            )
        )

        assert settings.asr_model == "large-v3"
        assert settings.noise_reduction.enabled is False
        assert settings.noise_reduction.strength == 1.0
        assert settings.flush_delay_seconds == 1.5
        assert settings.device == "cpu"

    def test_llm_model_implies_correct(self) -> None:
        settings = build_settings(parse("--llm-model", "qwen2.5:7b"))

        assert settings.correction.enabled is True
        assert settings.correction.model == "qwen2.5:7b"

    def test_config_file_then_overrides(self, tmp_path: Path) -> None:
        config = tmp_path / "dictation.toml"
        config.write_text(
            '[transcription]\nmodel = "medium"\nflush_delay_seconds = 2\n'
            "[correction]\nenabled = true\n",
            encoding="utf-8",
        )

        settings = build_settings(parse("--config", str(config), "--flush-delay", "4"))

        assert settings.asr_model == "medium"
        assert settings.correction.enabled is True
        assert settings.flush_delay_seconds == 4.0

    def test_missing_config_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            build_settings(parse("--config", str(tmp_path / "missing.toml")))


@pytest.mark.unit
class TestArgumentHandling:
    """Test cases for argument handling functionality."""

    def test_handle_arguments_verbose_logging(self) -> None:
        with patch("logging.basicConfig") as mock_logging:
            success, should_continue = handle_arguments(handled_args(verbose=True))

        mock_logging.assert_called_once_with(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        assert success is True
        assert should_continue is True

    def test_handle_arguments_normal_logging(self) -> None:
        with patch("logging.basicConfig") as mock_logging:
            handle_arguments(handled_args())

        mock_logging.assert_called_once_with(
            level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
        )

    def test_handle_arguments_trace_logging(self) -> None:
        with patch("logging.basicConfig") as mock_logging:
            handle_arguments(handled_args(trace=True))

        assert mock_logging.call_args.kwargs["level"] == 5

    def test_handle_arguments_list_models(self) -> None:
        with patch("logging.basicConfig"):
            with patch("local_dictation.main.list_models") as mock_list:
                success, should_continue = handle_arguments(handled_args(list_models=True))

        mock_list.assert_called_once()
        assert success is True
        assert should_continue is False

    def test_list_models_marks_recommendation(self) -> None:
        with patch("local_dictation.main.detect_ram_gb", return_value=32.0):
            with patch("builtins.print") as mock_print:
                list_models()

        lines = [call.args[0] for call in mock_print.call_args_list]
        assert lines[0] == "Recognition models (detected 32 GB RAM):"
        recommended = [line for line in lines if line.startswith(" * ")]
        assert len(recommended) == 1
        assert "cantonese-large-v3-turbo" in recommended[0]


@pytest.mark.integration
class TestCLIIntegration:
    """Integration tests for the CLI entry point."""

    def test_cli_entry_with_help(self) -> None:
        with patch("sys.argv", ["local-dictation", "--help"]):
            with patch("sys.stdout", new_callable=StringIO):
                with patch("local_dictation.main.handle_arguments") as mock_handle:
                    with pytest.raises(SystemExit):
                        from local_dictation.main import cli_entry_with_args

                        cli_entry_with_args()

                    mock_handle.assert_not_called()

    def test_cli_entry_with_list_models(self) -> None:
        with patch("sys.argv", ["local-dictation", "--list-models"]):
            with patch(
                "local_dictation.main.handle_arguments", return_value=(True, False)
            ) as mock_handle:
                with patch("asyncio.run") as mock_asyncio_run:
                    with pytest.raises(SystemExit) as exc_info:
                        from local_dictation.main import cli_entry_with_args

                        cli_entry_with_args()

                    assert exc_info.value.code == 0
                    mock_handle.assert_called_once()
                    mock_asyncio_run.assert_not_called()

    def test_cli_entry_with_invalid_settings(self, tmp_path: Path) -> None:
        config = tmp_path / "bad.toml"
        config.write_text("[correction\n", encoding="utf-8")

        with patch("sys.argv", ["local-dictation", "--config", str(config)]):
            with patch("local_dictation.main.handle_arguments", return_value=(True, True)):
                with patch("asyncio.run") as mock_asyncio_run:
                    with patch("builtins.print") as mock_print:
                        with pytest.raises(SystemExit) as exc_info:
                            from local_dictation.main import cli_entry_with_args

                            cli_entry_with_args()

        assert exc_info.value.code == 1
        mock_asyncio_run.assert_not_called()
        assert "Invalid settings" in mock_print.call_args.args[0]

    def test_cli_entry_runs_session(self) -> None:
        with patch("sys.argv", ["local-dictation", "--model", "small"]):
            with patch("local_dictation.main.handle_arguments", return_value=(True, True)):
                with patch("local_dictation.main.main") as mock_main:
                    with patch("asyncio.run") as mock_asyncio_run:
                        from local_dictation.main import cli_entry_with_args

                        cli_entry_with_args()

        mock_asyncio_run.assert_called_once()
        settings = mock_main.call_args.args[0]
        assert settings.asr_model == "small"
