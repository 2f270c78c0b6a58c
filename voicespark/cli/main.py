"""CLI entry point for VoiceSpark."""

import asyncio
import json
from pathlib import Path
from typing import Optional
import click
import structlog

from ..config.settings import settings
from ..core.builder import SessionConfig, build_session
from ..core.messages import Message, Role
from ..core.session import ConversationSession, SessionState
from ..errors import ConfigurationError, VoiceSparkError
from ..providers import registry
from ..utils.logging import setup_logging


logger = structlog.get_logger()

ASSISTANT_NAME = "Beatriz"

HELP_TEXT = """Commands:
  /voice   record from the microphone, press Enter to stop
  /send    send the pending voice transcript
  /reset   start the conversation over
  /status  show session status
  /quit    leave"""


def validate_provider(ctx, param, value):
    """Validate provider selection."""
    if value is None:
        return value

    if param.name == "stt_provider":
        valid_providers = registry.list_stt_providers()
        provider_type = "STT"
    elif param.name == "ai_provider":
        valid_providers = registry.list_ai_providers()
        provider_type = "AI"
    elif param.name == "tts_provider":
        valid_providers = registry.list_tts_providers()
        provider_type = "TTS"
    else:
        return value

    if value not in valid_providers:
        raise click.BadParameter(
            f"Invalid {provider_type} provider '{value}'. "
            f"Available options: {', '.join(valid_providers)}"
        )
    return value


class ChatPrinter:
    """Renders session events to the terminal."""

    def __init__(self):
        self.preview_shown = False

    def _end_preview(self) -> None:
        if self.preview_shown:
            click.echo()
            self.preview_shown = False

    def on_message(self, message: Message) -> None:
        if message.role is Role.ASSISTANT:
            self._end_preview()
            click.echo(click.style(f"{ASSISTANT_NAME}: ", fg="cyan", bold=True) + message.content)

    def on_transcript(self, text: str) -> None:
        click.echo(f"\r🎙️  {text}", nl=False)
        self.preview_shown = True

    def on_error(self, error: VoiceSparkError) -> None:
        self._end_preview()
        click.echo(click.style(f"⚠️  {error}", fg="yellow"))

    def on_state_change(self, state: SessionState) -> None:
        if state is SessionState.ENDED:
            click.echo(
                click.style(
                    "\nThe demo conversation has ended. Type /reset to start again or /quit to leave.",
                    fg="green",
                )
            )


async def _read_line(prompt: str) -> Optional[str]:
    try:
        return await asyncio.to_thread(
            click.prompt, prompt, default="", show_default=False, prompt_suffix="> "
        )
    except click.Abort:
        return None


async def _record(session: ConversationSession) -> None:
    if session.capture is None:
        click.echo(click.style("Voice input is off. Start with --voice to use the microphone.", fg="yellow"))
        return
    if not await session.request_speech_capture():
        return

    click.echo(click.style("🔴 Recording... press Enter to stop", fg="red"))
    await _read_line("")
    await session.cancel_speech_capture()

    sentiment = session.capture.last_sentiment
    if sentiment is not None:
        click.echo(f"(sentiment: {sentiment.label.value}, {sentiment.score:+.2f})")


async def run_chat(session: ConversationSession) -> None:
    """Read commands and messages until /quit or end of input."""
    for message in session.messages:
        click.echo(click.style(f"{ASSISTANT_NAME}: ", fg="cyan", bold=True) + message.content)

    while True:
        line = await _read_line("You")
        if line is None:
            break

        command = line.strip()
        if command in ("/quit", "/exit"):
            break
        elif command == "/help":
            click.echo(HELP_TEXT)
        elif command == "/voice":
            await _record(session)
        elif command == "/send":
            await session.submit_user_turn()
        elif command == "/reset":
            await session.reset()
            click.echo(click.style("Conversation restarted.", fg="green"))
            for message in session.messages:
                click.echo(click.style(f"{ASSISTANT_NAME}: ", fg="cyan", bold=True) + message.content)
        elif command == "/status":
            click.echo(json.dumps(session.get_status(), indent=2))
        elif command:
            if session.session_ended:
                click.echo(click.style("The conversation has ended. Type /reset to start again.", fg="yellow"))
                continue
            await session.submit_user_turn(command)
            await session.wait_until_ended()


async def _chat(config: SessionConfig) -> None:
    printer = ChatPrinter()
    session = build_session(
        settings,
        config,
        on_message=printer.on_message,
        on_transcript=printer.on_transcript,
        on_error=printer.on_error,
        on_state_change=printer.on_state_change,
    )
    try:
        await run_chat(session)
    finally:
        await session.close()


@click.command()
@click.option("--ai-provider", callback=validate_provider, help="AI provider to use")
@click.option("--stt-provider", callback=validate_provider, help="STT provider to use")
@click.option("--tts-provider", callback=validate_provider, help="TTS provider to use")
@click.option("--mock", is_flag=True, help="Use the credential-free providers (no API calls)")
@click.option("--voice", is_flag=True, help="Enable microphone input with /voice")
@click.option("--speech/--no-speech", default=True, help="Speak assistant replies")
@click.option("--cap", type=click.IntRange(min=1), help="Number of user messages before the demo ends")
@click.option(
    "--capture-mode",
    type=click.Choice(["streaming", "batch"]),
    help="Live transcription or one recording per turn",
)
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def chat(
    ai_provider: Optional[str],
    stt_provider: Optional[str],
    tts_provider: Optional[str],
    mock: bool,
    voice: bool,
    speech: bool,
    cap: Optional[int],
    capture_mode: Optional[str],
    config: Optional[str],
    debug: bool,
):
    """
    Chat with the caregiver assistant.

    Type a message and press Enter. Replies are spoken aloud unless
    --no-speech is given; without API keys the local fallbacks are used.
    """
    # Load configuration
    if config:
        settings.config_file = Path(config)
        settings.load_from_file()

    setup_logging(
        debug=debug,
        log_file=settings.logging.file_enabled,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        file_rotation_mb=settings.logging.file_rotation_mb,
        file_backup_count=settings.logging.file_backup_count,
    )

    # Override with command line options
    if cap:
        settings.session.message_cap = cap
    if capture_mode:
        settings.audio.capture_mode = capture_mode

    issues = settings.validate()
    if issues:
        for issue in issues:
            click.echo(click.style(f"❌ {issue}", fg="red"), err=True)
        raise click.exceptions.Exit(1)

    session_config = SessionConfig(
        ai_provider=ai_provider,
        stt_provider=stt_provider,
        tts_provider=tts_provider,
        mock_mode=mock,
        voice_enabled=voice,
        speech_enabled=speech,
    )

    click.echo(click.style("🎙️  VoiceSpark", fg="green", bold=True))
    if mock:
        click.echo(click.style("⚠️  Running in MOCK mode - no API calls will be made", fg="yellow"))
    click.echo("Type /help for commands.\n")

    try:
        asyncio.run(_chat(session_config))
    except ConfigurationError as e:
        click.echo(click.style(f"❌ {e}", fg="red"), err=True)
        raise click.exceptions.Exit(1)
    except KeyboardInterrupt:
        click.echo("\n\nShutting down...")

    click.echo("\n👋 Goodbye!")


@click.command()
def providers():
    """List available providers and whether their credentials are set."""
    click.echo("🔌 Available Providers")
    click.echo("-" * 50)

    sections = (
        ("🎙️  STT Providers", "stt", registry.list_stt_providers()),
        ("🤖 AI Providers", "ai", registry.list_ai_providers()),
        ("🔊 TTS Providers", "tts", registry.list_tts_providers()),
    )
    for title, kind, names in sections:
        click.echo(f"\n{title} ({len(names)})")
        for name in names:
            env_var = registry.credential_env(kind, name)
            if env_var is None:
                status = "no key needed"
            elif settings.credential_for_env(env_var):
                status = f"{env_var} set"
            else:
                status = f"{env_var} missing, falls back"
            click.echo(f"  - {name} ({status})")

    click.echo("\nUse --<type>-provider flag to select a specific provider.")
    click.echo("Example: voicespark chat --ai-provider gemini")


# Create CLI group
cli = click.Group(help="Voice-enabled caregiver assistant.")
cli.add_command(chat)
cli.add_command(providers)


if __name__ == "__main__":
    cli()
