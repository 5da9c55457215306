"""Main application entry point for LinguaVoice."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

from rich.console import Console

from .config import LinguaVoiceConfig, validate_max_duration
from .errors import CredentialMissingError, LinguaVoiceError
from .models.transcription import Language
from .services.state_machine import RecordingStateMachine
from .transcription.gemini_batch import GeminiBatchTranscriber
from .ui.recording_screen import RecordingScreen

logger = logging.getLogger(__name__)


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/linguavoice.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - warnings only, the live panel owns the terminal
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("LinguaVoice starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def transcribe_file(config: LinguaVoiceConfig, path: str, language: Language) -> str:
    """Batch-transcribe one audio file and return the text."""
    transcriber = GeminiBatchTranscriber(
        api_key=config.get_api_key(),
        model=config.get('gemini.batch_model'),
        api_base_url=config.get('gemini.api_base_url'),
        timeout_seconds=config.get('gemini.request_timeout_seconds', 60.0),
    )
    result = asyncio.run(transcriber.transcribe_file(path, language))
    logger.info(f"Transcribed {path} in {result.processing_time:.2f}s")
    return result.text


def run_interactive(config: LinguaVoiceConfig, console: Console) -> str:
    machine = RecordingStateMachine(config)
    screen = RecordingScreen(machine, console)
    try:
        return screen.run()
    finally:
        machine.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LinguaVoice - Real-time voice transcription",
        epilog="Commands: r=Record, p=Pause/Resume, s=Stop, c=Cancel, x=Reset, q=Quit"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )

    parser.add_argument(
        "--language",
        type=str,
        choices=[language.value for language in Language],
        help="Transcription language (overrides config)"
    )

    parser.add_argument(
        "--max-duration",
        type=int,
        help="Max recording length in seconds, whole minutes from 60 to 600 (overrides config)"
    )

    parser.add_argument(
        "--file",
        type=str,
        help="Transcribe an audio file in one request instead of recording"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="LinguaVoice v0.1.0"
    )

    return parser


def main() -> None:
    """Main entry point for LinguaVoice application."""
    args = build_parser().parse_args()
    console = Console()

    try:
        config = LinguaVoiceConfig(args.config)
        if args.language:
            config.set('recording.language', args.language)
        if args.max_duration is not None:
            config.set('recording.max_duration_seconds', validate_max_duration(args.max_duration))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(2)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    try:
        if args.file:
            language = Language(config.get('recording.language', Language.ENGLISH.value))
            console.print(transcribe_file(config, args.file, language), markup=False)
        else:
            transcript = run_interactive(config, console)
            if transcript:
                console.print("\n[bold]Transcript:[/bold]")
                console.print(transcript, markup=False)
            console.print("\nGoodbye!")
    except CredentialMissingError as e:
        console.print(f"[red]{e.detail}[/red]")
        sys.exit(1)
    except LinguaVoiceError as e:
        console.print(f"[red]Error: {e.detail}[/red]")
        logger.error(f"Application error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\nGoodbye!")


if __name__ == "__main__":
    main()
