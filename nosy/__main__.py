"""CLI entry point: nosy [summarize|recap|extract|ext] INPUT [options]"""

from __future__ import annotations

import argparse
import contextlib
import logging
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from nosy import __version__, settings
from nosy.errors import ModelMissingError, NosyError
from nosy.extractors.pandoc import pandoc_available
from nosy.extractors.whisper import whisper_model_path_from_env
from nosy.fetcher import FetchMode
from nosy.filetype import ExtractorKind
from nosy.pipeline import Pipeline, PipelineOptions

logger = logging.getLogger(__name__)

SUMMARIZE = "summarize"
EXTRACT = "extract"

# Subcommand aliases; no subcommand means summarize.
_COMMANDS: dict[str, str] = {
    "summarize": SUMMARIZE,
    "recap": SUMMARIZE,
    "extract": EXTRACT,
    "ext": EXTRACT,
}

_LOG_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def _build_parser(command: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=f"nosy {command}",
        description=(
            "Summarize any URL or local file with an LLM."
            if command == SUMMARIZE
            else "Extract plain text from any URL or local file."
        ),
        epilog=(
            "Inputs: http(s):// URLs, file:// URLs or local paths. "
            "Supported content: HTML, PDF, plain text, pandoc documents "
            "(docx, odt, rtf, epub, latex) and audio/video through whisper."
        ),
    )
    parser.add_argument("input", metavar="INPUT", help="URL or local file path")
    parser.add_argument("-o", "--out", default=None, metavar="PATH", type=Path,
                        help="Write the output to PATH (must not exist; default: stdout)")
    parser.add_argument("-w", "--workdir", default=None, metavar="DIR", type=Path,
                        help="Parent directory for temporary files (default: system temp dir)")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL,
                        choices=["off", *_LOG_LEVELS],
                        help=f"Logging level (default: {settings.LOG_LEVEL})")
    parser.add_argument("--no-progress", action="store_true", default=False,
                        help="Do not show progress spinners")
    parser.add_argument("--version", action="version", version=f"nosy {__version__}")

    fetch = parser.add_argument_group("fetch and extract")
    fetch.add_argument("--http-fetch-mode", default=FetchMode.GET.value,
                       choices=[m.value for m in FetchMode],
                       help="How remote URLs are fetched (default: get)")
    fetch.add_argument("--ext-kind", default=None,
                       choices=[k.value for k in ExtractorKind],
                       help="Force an extractor instead of detecting one from the content type")

    if command == SUMMARIZE:
        llm = parser.add_argument_group("summarize")
        llm.add_argument("--provider", default=None, metavar="ID",
                         help="LLM provider (default: inferred from the model name)")
        llm.add_argument("--model", default=settings.DEFAULT_MODEL, metavar="NAME",
                         help=f"Model name, optionally 'provider::model' (default: {settings.DEFAULT_MODEL})")
        llm.add_argument("--system-template", default=None, metavar="PATH", type=Path,
                         help="System message template file (default: built-in)")
        llm.add_argument("--user-template", default=None, metavar="PATH", type=Path,
                         help="User message template file (default: built-in)")
        llm.add_argument("--lang", default=settings.DEFAULT_LANGUAGE, metavar="LANGUAGE",
                         help=f"Language of the summary (default: {settings.DEFAULT_LANGUAGE})")
    return parser


def _split_command(argv: list[str]) -> tuple[str, list[str]]:
    if argv and argv[0] in _COMMANDS:
        return _COMMANDS[argv[0]], argv[1:]
    return SUMMARIZE, argv


def _validate_args(args: argparse.Namespace, command: str) -> str | None:
    """Return an error message if the arguments are unusable, else None."""
    if args.out is not None and args.out.exists():
        return f"output file already exists: {args.out}"
    if command == SUMMARIZE:
        for flag, path in [
            ("--system-template", args.system_template),
            ("--user-template", args.user_template),
        ]:
            if path is not None and not path.is_file():
                return f"{flag} file does not exist: {path}"
    if args.ext_kind == ExtractorKind.PANDOC.value and not pandoc_available():
        return f"--ext-kind pandoc requires pandoc on PATH. {settings.PANDOC_INSTALLATION_HINT}"
    if args.ext_kind == ExtractorKind.WHISPER.value:
        try:
            whisper_model_path_from_env()
        except ModelMissingError as exc:
            return f"--ext-kind whisper: {exc}"
    return None


def _configure_logging(level: str, console: Console) -> None:
    root = logging.getLogger("nosy")
    root.handlers.clear()
    root.propagate = False
    if level == "off":
        root.addHandler(logging.NullHandler())
        root.setLevel(logging.CRITICAL + 1)
        return
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(_LOG_LEVELS[level])


def _options_from_args(args: argparse.Namespace, command: str) -> PipelineOptions:
    opts = PipelineOptions(
        fetch_mode=FetchMode(args.http_fetch_mode),
        ext_kind=ExtractorKind(args.ext_kind) if args.ext_kind else None,
        workdir=args.workdir,
    )
    if command == SUMMARIZE:
        opts.provider = args.provider
        opts.model = args.model
        opts.language = args.lang
        opts.system_template = args.system_template
        opts.user_template = args.user_template
    return opts


@contextlib.contextmanager
def _open_sink(path: Path | None) -> Iterator[TextIO]:
    """Yield stdout, or a freshly created *path* that is removed on failure."""
    if path is None:
        yield sys.stdout
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = path.open("x", encoding="utf-8")
    except OSError as exc:
        raise NosyError(f"cannot create output file '{path}': {exc}", stage="output") from exc
    try:
        yield fh
    except BaseException:
        fh.close()
        path.unlink(missing_ok=True)
        raise
    fh.close()


def _run(args: argparse.Namespace, command: str, err: Console) -> None:
    opts = _options_from_args(args, command)
    show_progress = not args.no_progress and not (command == SUMMARIZE and args.out is None)

    with contextlib.ExitStack() as stack:
        if show_progress:
            status = stack.enter_context(err.status("Starting...", spinner="dots"))
            opts.progress = lambda message: status.update(escape(message))
        pipeline = Pipeline(opts)
        with _open_sink(args.out) as sink:
            if command == EXTRACT:
                result = pipeline.extract(args.input)
                sink.write(result.text)
                if not result.text.endswith("\n"):
                    sink.write("\n")
            else:
                summary = pipeline.summarize(args.input, sink)
                if summary and not summary.endswith("\n"):
                    sink.write("\n")
            sink.flush()

    if args.out is not None:
        err.print(f"[green]Wrote[/green] {escape(str(args.out))}")


def main(argv: list[str] | None = None) -> int:
    command, rest = _split_command(list(sys.argv[1:] if argv is None else argv))
    parser = _build_parser(command)
    try:
        args = parser.parse_args(rest)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_USAGE

    err = Console(stderr=True)
    _configure_logging(args.log_level, err)

    problem = _validate_args(args, command)
    if problem:
        parser.print_usage(sys.stderr)
        err.print(f"[bold red]error:[/bold red] {escape(problem)}")
        return EXIT_USAGE

    try:
        _run(args, command, err)
    except NosyError as exc:
        logger.debug("run failed", exc_info=True)
        err.print(escape(f"error [{exc.stage}]: {exc}"), style="bold red", highlight=False, soft_wrap=True)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        err.print("[yellow]interrupted[/yellow]")
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
