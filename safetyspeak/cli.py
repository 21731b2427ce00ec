"""Command line entry point for SafetySpeak.

Queues documents and text for one or more languages, runs the queue to the
end and writes the translations and speech audio next to each other.
"""

# Standard library imports
import asyncio
import difflib
import logging
import os
import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from safetyspeak.config import PipelineConfig
from safetyspeak.coordinator import Coordinator
from safetyspeak.core import (
    AudioFormat,
    DEFAULT_LANGUAGE,
    LANGUAGE_CODES,
    LANGUAGE_LABELS,
    TargetLanguage,
)
from safetyspeak.jobs.models import ItemStatus, QueueItem
from safetyspeak.jobs.processor import JobQueueProcessor
from safetyspeak.playback import PlaybackController

logger = logging.getLogger(__name__)

# Options that take a value
VALUE_OPTIONS = {'--text', '--lang', '--output-dir', '--format', '--model', '--voices', '--log-level'}
FLAG_OPTIONS = {'--play', '--gpu', '--help', '--help-languages'}

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


@dataclass
class CliOptions:
    files: List[str] = field(default_factory=list)
    text: Optional[str] = None
    languages: List[TargetLanguage] = field(default_factory=list)
    output_dir: str = "."
    format: str = "wav"
    play: bool = False
    model_path: str = "kokoro-v1.0.onnx"
    voices_path: str = "voices-v1.0.bin"
    use_gpu: bool = False
    log_level: Optional[str] = None


def get_valid_options():
    """Return the set of valid command line options."""
    return VALUE_OPTIONS | FLAG_OPTIONS | {'-h'}


def print_usage():
    print("""
Usage: safetyspeak [<file> ...] [options]

Commands:
    -h, --help          Show this help message
    --help-languages    List all supported languages

Options:
    --text <str>        Translate this text as well as the files
    --lang <str>        Target language; repeat for several (default: Chinese (Simplified))
    --output-dir <dir>  Directory for translations and audio (default: .)
    --format <str>      Audio format: wav, mp3, or m4a (default: wav)
    --play              Play each finished briefing
    --gpu               Enable GPU acceleration (requires onnxruntime-gpu installation)
    --model <path>      Path to kokoro-v1.0.onnx model file (default: ./kokoro-v1.0.onnx)
    --voices <path>     Path to voices-v1.0.bin file (default: ./voices-v1.0.bin)
    --log-level <str>   Logging level (default: INFO, or SAFETYSPEAK_LOG_LEVEL)

Input formats:
    .txt .pdf .docx .epub   Read directly
    .hwp .pptx .xlsx        Accepted, but paste the text or convert to PDF

Environment:
    SAFETYSPEAK_API_KEY or OPENAI_API_KEY   Translation API key

Examples:
    safetyspeak briefing.pdf --lang vietnamese --lang russian
    safetyspeak --text "안전모를 착용하십시오." --lang english --play
    safetyspeak notice.docx --format mp3 --output-dir out/
""")


def print_supported_languages():
    print("\nSupported languages:")
    for lang in TargetLanguage:
        label, native = LANGUAGE_LABELS[lang]
        print(f"    {LANGUAGE_CODES[lang]:<4}{lang.value} ({native}, {label})")
    print()


def parse_args(argv: List[str]) -> CliOptions:
    """Parse command line arguments, exiting with status 1 on bad input."""
    valid_options = get_valid_options()

    unknown_options = [
        arg for i, arg in enumerate(argv)
        if arg.startswith('--') and arg not in valid_options
        and not (i > 0 and argv[i - 1] in VALUE_OPTIONS)
    ]
    if unknown_options:
        print("Error: Unknown option(s):", ", ".join(unknown_options))
        print("\nDid you mean one of these?")
        for unknown in unknown_options:
            similar = difflib.get_close_matches(unknown, valid_options, n=3, cutoff=0.4)
            if similar:
                print(f"  {unknown} -> {', '.join(similar)}")
        print("\n")
        print_usage()
        sys.exit(1)

    options = CliOptions()
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg in VALUE_OPTIONS:
            if i + 1 >= len(argv):
                print(f"Error: {arg} requires a value")
                sys.exit(1)
            value = argv[i + 1]
            i += 2
            if arg == '--text':
                options.text = value
            elif arg == '--lang':
                try:
                    options.languages.append(TargetLanguage.parse(value))
                except ValueError as e:
                    print(f"Error: {e}")
                    sys.exit(1)
            elif arg == '--output-dir':
                options.output_dir = value
            elif arg == '--format':
                options.format = value.lower()
                if options.format not in ['wav', 'mp3', 'm4a']:
                    print("Error: Format must be either 'wav', 'mp3', or 'm4a'")
                    sys.exit(1)
            elif arg == '--model':
                options.model_path = value
            elif arg == '--voices':
                options.voices_path = value
            elif arg == '--log-level':
                options.log_level = value.upper()
            continue

        if arg == '--play':
            options.play = True
        elif arg == '--gpu':
            options.use_gpu = True
        else:
            options.files.append(arg)
        i += 1

    if not options.languages:
        options.languages = [DEFAULT_LANGUAGE]
    if not options.files and not (options.text and options.text.strip()):
        print("Error: No input files or text given")
        print_usage()
        sys.exit(1)
    return options


def output_stem(item: QueueItem) -> str:
    """Base name for an item's output files: <name>.<language code>."""
    if item.source.is_file:
        name = item.source.path.stem
    else:
        name = "text"
    return f"{name}.{LANGUAGE_CODES[item.target_language]}"


def write_outputs(item: QueueItem, output_dir: str, audio_format: AudioFormat) -> List[str]:
    """Write the translation and audio of a finished item. Returns written paths."""
    written = []
    stem = output_stem(item)
    if item.translated_text:
        text_path = os.path.join(output_dir, f"{stem}.txt")
        with open(text_path, 'w', encoding='utf-8') as f:
            f.write(item.translated_text)
        written.append(text_path)
    if item.audio is not None:
        audio_path = os.path.join(output_dir, f"{stem}.{audio_format.value}")
        item.audio.save(audio_path, audio_format)
        written.append(audio_path)
    return written


def format_item_line(item: QueueItem) -> str:
    mark = {
        ItemStatus.COMPLETED: "✓" if not item.error_message else "!",
        ItemStatus.ERROR: "✗",
    }.get(item.status, "-")
    line = f"{mark} {item.display_name} [{item.target_language.value}] {item.format_status_message()}"
    if item.error_info is not None and item.error_info.hint:
        line += f"\n    Hint: {item.error_info.hint}"
    return line


async def play_to_end(playback: PlaybackController, items: List[QueueItem]):
    """Play each item's audio in turn, waiting for each one to finish."""
    finished = asyncio.Event()
    playback.on_session_end(lambda item_id, reason: finished.set())

    for item in items:
        if item.audio is None:
            continue
        print(f"Playing {item.display_name} [{item.target_language.value}] "
              f"({item.audio.duration:.1f}s)")
        finished.clear()
        playback.play(item.audio, item.item_id)
        await finished.wait()


async def run_queue(
    options: CliOptions,
    gateway,
    config: PipelineConfig,
    playback: Optional[PlaybackController] = None
) -> int:
    """
    Queue the inputs, process them and write the results.

    Returns:
        Exit status: 1 if any item failed or nothing could be queued, else 0
    """
    playback = playback or PlaybackController(frame_interval=config.frame_interval)
    processor = JobQueueProcessor(gateway, config=config, playback=playback)
    coordinator = Coordinator(processor)

    for language in options.languages:
        if options.files:
            coordinator.add_files(options.files, language)
        if options.text:
            coordinator.add_text(options.text, language)

    if processor.global_error:
        print(f"Error: {processor.global_error}")
    if not processor.items:
        print("Error: Nothing to process")
        return 1

    print(f"Processing {len(processor.items)} item(s)...")
    coordinator.toggle_processing()
    await processor.join()

    debug = (options.log_level or config.log_level) == "DEBUG"
    Path(options.output_dir).mkdir(parents=True, exist_ok=True)
    audio_format = AudioFormat(options.format)
    items = list(processor.items)
    for item in items:
        print(format_item_line(item))
        if item.status == ItemStatus.ERROR and debug:
            for entry in processor.get_item_errors(item.item_id):
                print(textwrap.indent(entry['metadata']['traceback'].rstrip(), "    "))
        if item.status == ItemStatus.COMPLETED:
            for path in write_outputs(item, options.output_dir, audio_format):
                print(f"    Saved {path}")

    if options.play:
        await play_to_end(playback, items)

    stats = processor.statistics()
    print(f"\nDone: {stats[ItemStatus.COMPLETED.value]} completed, "
          f"{stats[ItemStatus.ERROR.value]} failed")
    return 1 if stats[ItemStatus.ERROR.value] else 0


def build_gateway(options: CliOptions, config: PipelineConfig):
    """Create the default backends."""
    from safetyspeak.extraction import DocumentExtractor
    from safetyspeak.gateway import BackendStageGateway
    from safetyspeak.synthesis import SpeechSynthesizer
    from safetyspeak.translation import ChatTranslator

    synthesizer = SpeechSynthesizer(
        model_path=options.model_path,
        voices_path=options.voices_path,
        use_gpu=options.use_gpu,
    )
    translator = ChatTranslator(
        api_key=config.api_key,
        model=config.translation_model,
        base_url=config.translation_base_url,
        timeout_seconds=config.translation_timeout,
    )
    return BackendStageGateway(DocumentExtractor(), translator, synthesizer, config)


def main(argv: Optional[List[str]] = None):
    """Main entry point for the safetyspeak CLI tool."""
    argv = sys.argv[1:] if argv is None else argv

    if '--help' in argv or '-h' in argv:
        print_usage()
        sys.exit(0)
    elif '--help-languages' in argv:
        print_supported_languages()
        sys.exit(0)

    options = parse_args(argv)

    try:
        config = PipelineConfig.from_env()
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(level=options.log_level or config.log_level, format=LOG_FORMAT)

    try:
        gateway = build_gateway(options, config)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        print("Download the model files with:")
        print("    wget https://github.com/nazdridoy/kokoro-tts/releases/download/v1.0.0/kokoro-v1.0.onnx")
        print("    wget https://github.com/nazdridoy/kokoro-tts/releases/download/v1.0.0/voices-v1.0.bin")
        sys.exit(1)

    try:
        exit_code = asyncio.run(run_queue(options, gateway, config))
    except KeyboardInterrupt:
        print("\nCtrl+C detected, stopping...")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
