"""Speech-to-text for audio and video files with Whisper.

The model is never downloaded here: ``WHISPER_MODEL_PATH`` must point at a
local file.  Two formats are accepted:

* whisper.cpp ``ggml`` models (``ggml-base.bin`` ...), run with pywhispercpp
* openai-whisper checkpoints (``base.pt`` ...), run with openai-whisper

Audio decoding goes through ffmpeg (called by ``whisper.load_audio``), which
resamples to 16 kHz mono.
"""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Callable
from pathlib import Path

from nosy import settings
from nosy.errors import EmptyOutputError, InferenceError, ModelMissingError
from nosy.extractors.base import Extractor

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16_000

# First four bytes of a ggml model file (0x67676d6c, little-endian).
GGML_MAGIC = b"lmgg"


class ModelFormat(str, enum.Enum):
    GGML = "ggml"
    TORCH = "torch"


def whisper_model_path_from_env(environ: dict[str, str] | None = None) -> Path:
    """Return the validated model path from ``WHISPER_MODEL_PATH``.

    Raises:
        ModelMissingError: If the variable is unset, empty, or not a file.
    """
    env = os.environ if environ is None else environ
    name = settings.WHISPER_MODEL_PATH_ENV
    value = env.get(name, "").strip()
    if not value:
        raise ModelMissingError(f"{name} is not set: point it at a local whisper model file")
    path = Path(value).expanduser()
    if not path.exists():
        raise ModelMissingError(f"invalid whisper model path at '{path}': file does not exist")
    if not path.is_file():
        raise ModelMissingError(f"invalid whisper model path at '{path}': not a file")
    return path


def whisper_model_format(path: Path) -> ModelFormat:
    """ggml when the file starts with the ggml magic or ends in ``.bin``."""
    try:
        with path.open("rb") as fh:
            head = fh.read(len(GGML_MAGIC))
    except OSError as exc:
        raise ModelMissingError(f"cannot read whisper model '{path}': {exc}") from exc
    if head == GGML_MAGIC or path.suffix.lower() == ".bin":
        return ModelFormat.GGML
    return ModelFormat.TORCH


def join_segments(texts: list[str]) -> str:
    parts = [str(t).strip() for t in texts]
    return "\n".join(p for p in parts if p)


class WhisperExtractor(Extractor):
    name = "whisper"

    def __init__(self, *args, environ: dict[str, str] | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._environ = environ

    def extract(
        self,
        data: bytes,
        *,
        extension: str | None = None,
        mime: str | None = None,
        charset: str | None = None,
    ) -> str:
        model_path = whisper_model_path_from_env(self._environ)
        model_format = whisper_model_format(model_path)

        try:
            import whisper  # type: ignore[import-untyped]
        except ImportError as exc:
            raise InferenceError(
                "whisper extraction requires openai-whisper: pip install openai-whisper",
            ) from exc

        scratch = self.write_scratch(data, extension)
        try:
            self.report("Decoding audio...")
            try:
                audio = whisper.load_audio(str(scratch), sr=WHISPER_SAMPLE_RATE)
            except Exception as exc:
                raise InferenceError(f"failed to decode audio: {exc}") from exc
        finally:
            scratch.unlink(missing_ok=True)
        if len(audio) == 0:
            raise InferenceError("decoded audio is empty")

        duration = len(audio) / WHISPER_SAMPLE_RATE
        count = 0

        def on_segment(end: float) -> None:
            nonlocal count
            count += 1
            self.report(f"Segment {count} [{end:.0f}s/{duration:.0f}s]")

        self.report(f"Loading whisper model {model_path.name} ({model_format.value})...")
        if model_format is ModelFormat.GGML:
            texts = self._transcribe_ggml(audio, model_path, duration, on_segment)
        else:
            texts = self._transcribe_torch(whisper, audio, model_path, duration, on_segment)

        text = join_segments(texts)
        if not text:
            raise EmptyOutputError("whisper produced empty output")
        return text

    def _transcribe_ggml(
        self,
        audio,
        model_path: Path,
        duration: float,
        on_segment: Callable[[float], None],
    ) -> list[str]:
        try:
            from pywhispercpp.model import Model
        except ImportError as exc:
            raise InferenceError(
                "ggml whisper models require pywhispercpp: pip install pywhispercpp",
            ) from exc

        try:
            model = Model(
                str(model_path),
                n_threads=os.cpu_count() or 1,
                redirect_whispercpp_logs_to=None,
            )
        except Exception as exc:
            raise InferenceError(f"failed to load whisper model '{model_path}': {exc}") from exc

        self.report(f"Transcribing {duration:.0f}s of audio with whisper.cpp...")
        try:
            # t0/t1 are in units of 10 ms
            segments = model.transcribe(
                audio, new_segment_callback=lambda seg: on_segment(seg.t1 / 100),
            )
        except Exception as exc:
            raise InferenceError(f"failed to run whisper transcription: {exc}") from exc
        return [seg.text for seg in segments]

    def _transcribe_torch(
        self,
        whisper,
        audio,
        model_path: Path,
        duration: float,
        on_segment: Callable[[float], None],
    ) -> list[str]:
        try:
            model = whisper.load_model(str(model_path))
        except Exception as exc:
            raise InferenceError(f"failed to load whisper model '{model_path}': {exc}") from exc

        fp16 = getattr(model.device, "type", "cpu") == "cuda"
        window = max(1, settings.WHISPER_CHUNK_SECONDS) * WHISPER_SAMPLE_RATE
        texts: list[str] = []
        prompt = None
        self.report(f"Transcribing {duration:.0f}s of audio with whisper...")
        for start in range(0, len(audio), window):
            offset = start / WHISPER_SAMPLE_RATE
            try:
                result = model.transcribe(
                    audio[start:start + window],
                    verbose=None,
                    fp16=fp16,
                    initial_prompt=prompt,
                )
            except Exception as exc:
                raise InferenceError(f"failed to run whisper transcription: {exc}") from exc

            segments = result.get("segments") or []
            for seg in segments:
                texts.append(str(seg.get("text", "")))
                on_segment(offset + float(seg.get("end", 0.0)))
            chunk_text = str(result.get("text", "")).strip()
            if not segments and chunk_text:
                texts.append(chunk_text)
            # condition the next window on this one
            prompt = chunk_text or None
        return texts
