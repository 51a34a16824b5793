"""Command-line interface for live dictation."""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace

from .correction.exceptions import CorrectionError
from .settings import DictationSettings, load_settings
from .speech_to_text.exceptions import DictationError
from .speech_to_text.logging_utils import configure_logging
from .speech_to_text.model_registry import default_registry, detect_ram_gb, recommended_model
from .speech_to_text.models import DisplayUpdate, LoadState, LoadStatus
from .speech_to_text.service import DictationSession


class DictationCLI:
    """Command-line front end for one dictation session."""

    def __init__(
        self,
        settings: DictationSettings | None = None,
        session: DictationSession | None = None,
    ) -> None:
        """
        Initialize the CLI.

        Args:
            settings: Configuration snapshot, defaults if None
            session: Optional DictationSession instance. If None, creates a new one.
        """
        self._settings = settings or DictationSettings()
        self._session = session or DictationSession(self._settings)
        self._running = False
        self._finalized_count = 0
        self._finalized: list[str] = []
        self._level = 0.0

    @property
    def finalized(self) -> list[str]:
        return list(self._finalized)

    async def start_listening(self) -> None:
        """Load models and start the dictation session."""
        try:
            print(f"🧠 Loading model {self._session.model_spec.display_name}...")
            self._session.set_load_state_callback(self._on_load_state)
            self._session.set_finalized_callback(self._on_finalized)
            self._session.set_display_callback(self._on_display)
            self._session.set_level_callback(self._on_level)

            await self._session.load_models()
            await self._session.start_listening()

            self._running = True
            print("✅ Listening. Speak into your microphone!")
            print("   Press Ctrl+C to stop.")

        except (DictationError, CorrectionError) as e:
            self._running = False
            print(f"❌ Error starting dictation: {e}")

    async def stop_listening(self) -> None:
        """Stop the session, finalizing any pending text."""
        if not self._running:
            return

        print("🛑 Stopping dictation...")
        self._running = False
        await self._session.stop_listening()

    def _on_finalized(self, text: str) -> None:
        self._finalized_count += 1
        self._finalized.append(text)
        print(f"[{self._finalized_count}] {text}")

    def _on_level(self, level: float) -> None:
        self._level = level

    def _on_display(self, update: DisplayUpdate) -> None:
        if update.hypothesis_text:
            meter = "▮" * round(self._level * 10)
            logging.getLogger(__name__).debug(f"{meter:<10} … {update.hypothesis_text}")

    def _on_load_state(self, kind: str, state: LoadState) -> None:
        label = kind.upper()
        if state.status == LoadStatus.DOWNLOADING:
            print(f"⬇️  {label} downloading: {state.progress:.0%}")
        elif state.status == LoadStatus.LOADED:
            print(f"✅ {label} model loaded")
        elif state.status == LoadStatus.ERROR:
            print(f"❌ {label} error: {state.message}")
            # An engine failure ends the session
            self._running = False

    async def run(self) -> None:
        """
        Main CLI run loop.

        Handles startup, main loop, and graceful shutdown.
        """
        try:
            await self.start_listening()

            while self._running:
                await asyncio.sleep(0.1)

            await self._session.wait_aborted()

        except (KeyboardInterrupt, asyncio.CancelledError):
            print("\n👋 Goodbye!")
        finally:
            if self._running:
                await self.stop_listening()


async def main(settings: DictationSettings | None = None) -> None:
    """Main entry point for the CLI application."""
    cli = DictationCLI(settings=settings)
    try:
        await cli.run()
    except KeyboardInterrupt:
        pass  # Graceful shutdown already handled in cli.run()


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Local Dictation - live Cantonese dictation with on-device models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  local-dictation                                  # Start with defaults
  local-dictation --list-models                    # Show recognition models
  local-dictation --model large-v3                 # Use a different recognizer
  local-dictation --correct                        # Enable LLM homophone correction
  local-dictation --llm-model qwen2.5:7b           # Correct with a specific Ollama model
  local-dictation --noise-strength 0.8             # Stronger noise gating
  local-dictation --config ~/.config/dictation.toml
  local-dictation --verbose                        # Enable verbose logging

Controls:
  Ctrl+C    - Stop, print any pending text and exit

Finalized text is printed after each pause and when you stop.
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="TOML settings file with [noise_reduction], [correction] and [transcription] tables",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        metavar="ID",
        help="Recognition model id (see --list-models) or a local CTranslate2 model directory",
    )

    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List recognition models and the recommendation for this machine",
    )

    parser.add_argument(
        "--no-noise-reduction",
        action="store_true",
        help="Disable the high-pass filter and spectral noise gate",
    )

    parser.add_argument(
        "--noise-strength",
        type=float,
        default=None,
        metavar="F",
        help="Noise gate strength from 0.0 (gentle) to 1.0 (aggressive)",
    )

    parser.add_argument(
        "--correct",
        action="store_true",
        help="Enable LLM homophone correction through a local Ollama server",
    )

    parser.add_argument(
        "--llm-model",
        type=str,
        default=None,
        metavar="NAME",
        help="Ollama model used for correction (implies --correct)",
    )

    parser.add_argument(
        "--flush-delay",
        type=float,
        default=None,
        metavar="S",
        help="Seconds of silence after a pause before text is finalized",
    )

    parser.add_argument(
        "--force-cpu",
        action="store_true",
        help="Force CPU-only mode, disable GPU/CUDA acceleration",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging and debug information",
    )

    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable trace logging (most verbose, includes all debug info)",
    )

    return parser


def build_settings(args: argparse.Namespace) -> DictationSettings:
    """
    Combine the settings file with command-line overrides.

    Args:
        args: Parsed arguments from argparse

    Returns:
        Settings snapshot for the session

    Raises:
        ConfigurationError: If the settings file or an override is invalid
    """
    settings = load_settings(args.config)

    noise = settings.noise_reduction
    if args.no_noise_reduction:
        noise = replace(noise, enabled=False)
    if args.noise_strength is not None:
        noise = replace(noise, strength=max(0.0, min(1.0, args.noise_strength)))

    correction = settings.correction
    if args.llm_model:
        correction = replace(correction, enabled=True, model=args.llm_model)
    elif args.correct:
        correction = replace(correction, enabled=True)

    flush_delay = None
    if args.flush_delay is not None:
        flush_delay = max(0.0, args.flush_delay)

    return settings.with_overrides(
        noise_reduction=noise,
        correction=correction,
        asr_model=args.model,
        flush_delay_seconds=flush_delay,
        device="cpu" if args.force_cpu else None,
    )


def list_models() -> None:
    """Print the registered recognition models."""
    registry = default_registry()
    ram_gb = detect_ram_gb()
    recommended = recommended_model(registry, ram_gb)

    print(f"Recognition models (detected {ram_gb:.0f} GB RAM):")
    for spec in registry.models():
        marker = "*" if spec.model_id == recommended.model_id else " "
        print(
            f" {marker} {spec.model_id:<26} {spec.display_name:<36} "
            f"min RAM {spec.minimum_ram_gb} GB, {spec.language_style.value}"
        )
    print("\n* recommended for this machine")


def handle_arguments(args: argparse.Namespace) -> tuple[bool, bool]:
    """
    Handle parsed command-line arguments.

    Args:
        args: Parsed arguments from argparse

    Returns:
        Tuple of (success, should_continue):
        - success: True if all operations succeeded, False if any failed
        - should_continue: True if execution should continue, False if it should stop
    """
    configure_logging(verbose=args.verbose, trace=args.trace)

    if args.noise_strength is not None and not 0.0 <= args.noise_strength <= 1.0:
        print(f"⚠️ Noise strength {args.noise_strength} clamped to [0, 1]")

    if args.list_models:
        list_models()
        return True, False

    return True, True


def cli_entry_with_args() -> None:
    """CLI entry point with argument parsing."""
    parser = create_argument_parser()

    try:
        args = parser.parse_args()

        success, should_continue = handle_arguments(args)

        if not success:
            sys.exit(1)

        if not should_continue:
            sys.exit(0)

        try:
            settings = build_settings(args)
        except DictationError as e:
            print(f"❌ Invalid settings: {e}")
            sys.exit(1)

        asyncio.run(main(settings))

    except KeyboardInterrupt:
        pass  # Graceful shutdown
    except SystemExit:
        # Re-raise SystemExit (from argparse help, etc.)
        raise
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli_entry_with_args()
