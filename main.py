"""
Command line entry point for the speech client.
"""
import asyncio
import dataclasses
import json
import sys

import rich_click as click

from speech_client.data_layer.data_classes.domain_models.recognition_options import RecognitionOptions
from speech_client.data_layer.data_classes.domain_models.speech_results import SpeechResults
from speech_client.services.streaming.recognize_delegate import RecognizeDelegate
from speech_client.speech_to_text import SpeechToText
from speech_client.utils.exceptions import SpeechClientError
from speech_client.utils.logger import Logger, get_console, info
from speech_client.utils.static_memory_cache import StaticMemoryCache

click.rich_click.USE_RICH_MARKUP = True


class ConsoleDelegate(RecognizeDelegate):
    """Prints streaming results as they arrive."""

    def __init__(self, show_interim: bool = True):
        self.show_interim = show_interim

    def on_connected(self):
        info("Connected, streaming audio...", "cli")

    def on_message(self, speech_results: SpeechResults, is_final: bool):
        if is_final:
            get_console().print(f"[bold green]{speech_results.transcript}[/bold green]")
        elif self.show_interim:
            get_console().print(f"[dim]{speech_results.transcript}[/dim]")

    def on_error(self, error: Exception):
        get_console().print(f"[red]Recognition failed: {error}[/red]")

    def on_disconnected(self):
        get_console().print("[red]Disconnected before the final result[/red]")


def _service() -> SpeechToText:
    return SpeechToText.from_config()


def _run(coro):
    try:
        return asyncio.run(coro)
    except SpeechClientError as e:
        get_console().print(f"[red]{type(e).__name__}: {e}[/red]")
        sys.exit(1)


@click.group()
@click.option("--config", default="config.json", show_default=True, help="Configuration file path")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(config, debug):
    """Speech to text service client."""
    StaticMemoryCache.initialize(config)
    if debug:
        StaticMemoryCache.config.setdefault("logging", {})["log_level"] = "DEBUG"
    Logger.reconfigure()


@cli.command()
def models():
    """List available models."""
    async def _list():
        async with _service() as service:
            for model in await service.get_models():
                get_console().print(f"{model.name}\t{model.rate}\t{model.description or ''}")
    _run(_list())


@cli.command()
@click.argument("name")
def model(name):
    """Show one model."""
    async def _get():
        async with _service() as service:
            descriptor = await service.get_model(name)
            get_console().print_json(json.dumps(dataclasses.asdict(descriptor)))
    _run(_get())


@cli.command()
@click.argument("audio", type=click.Path(exists=True, dir_okay=False))
@click.option("--model", "model_name", help="Model name, e.g. en-US_BroadbandModel")
@click.option("--content-type", help="Audio content type (inferred from the extension by default)")
@click.option("--continuous/--no-continuous", default=True, show_default=True)
@click.option("--timestamps", is_flag=True, help="Include word timestamps")
@click.option("--word-confidence", is_flag=True, help="Include word confidences")
@click.option("--json", "as_json", is_flag=True, help="Print the raw results")
def recognize(audio, model_name, content_type, continuous, timestamps, word_confidence, as_json):
    """Recognize an audio file in one request."""
    options = RecognitionOptions(
        continuous=continuous,
        timestamps=timestamps,
        word_confidence=word_confidence,
        model=model_name,
    )

    async def _recognize():
        async with _service() as service:
            results = await service.recognize(audio, content_type, options)
            if as_json:
                get_console().print_json(json.dumps(results.to_dict()))
            else:
                get_console().print(results.transcript)
    _run(_recognize())


@cli.command()
@click.argument("audio", type=click.Path(exists=True, dir_okay=False))
@click.option("--model", "model_name", help="Model name, e.g. en-US_BroadbandModel")
@click.option("--content-type", help="Audio content type (inferred from the extension by default)")
@click.option("--interim/--no-interim", default=True, show_default=True, help="Show interim results")
@click.option("--timeout", default=30.0, show_default=True, help="Seconds to wait for the final result")
def stream(audio, model_name, content_type, interim, timeout):
    """Recognize an audio file over the streaming channel."""
    options = RecognitionOptions(
        continuous=True,
        interim_results=interim,
        model=model_name,
        content_type=content_type,
    )

    async def _stream():
        async with _service() as service:
            async with service.streaming(audio, options, ConsoleDelegate(interim)) as recognizer:
                try:
                    await asyncio.wait_for(recognizer.result(), timeout)
                except asyncio.TimeoutError:
                    get_console().print(f"[red]No final result within {timeout}s[/red]")
                    sys.exit(1)
                except SpeechClientError:
                    # Already reported by the delegate
                    sys.exit(1)
    _run(_stream())


if __name__ == "__main__":
    cli()
