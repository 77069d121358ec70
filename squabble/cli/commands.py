"""CLI commands for squabble."""

import asyncio
import sys
import uuid

import typer
from loguru import logger
from rich.console import Console

from squabble import __logo__, __version__
from squabble.agent.dispatch import Dispatcher
from squabble.agent.runtime import AgentRuntime, ToolAgentRuntime
from squabble.config.schema import Config
from squabble.errors import ConfigError
from squabble.session.manager import SessionManager
from squabble.transport.base import MessageEnvelope, Transport, load_transport
from squabble.transport.local import LocalTransport
from squabble.triggers.evaluator import TriggerEvaluator
from squabble.wallet.store import FileWalletStore

app = typer.Typer(
    name="squabble",
    help=f"{__logo__} squabble - group-chat game agent",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} squabble v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
):
    """squabble - group-chat game agent."""
    pass


def _setup_logging(verbose: bool = False, logs: bool = True) -> None:
    logger.remove()
    if not logs:
        logger.disable("squabble")
        return
    logger.enable("squabble")
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _make_agent(config: Config) -> AgentRuntime:
    """Create the agent runtime from config."""
    from squabble.providers.factory import create_provider

    provider = create_provider(config)
    agent = config.agent
    return ToolAgentRuntime(
        provider=provider,
        model=agent.model,
        system_prompt=agent.system_prompt,
        temperature=agent.temperature,
        max_tokens=agent.max_tokens,
        max_iterations=agent.max_iterations,
        history_window=agent.history_window,
        service=config.squabble,
    )


def _make_dispatcher(config: Config, transport: Transport, agent: AgentRuntime) -> Dispatcher:
    """Wire sessions, triggers and wallet storage around a transport and agent."""
    identity = config.transport.identity or transport.identity
    sessions = SessionManager(
        state_timeout=config.session.state_timeout,
        max_context_messages=config.session.max_context_messages,
        recent_bot_messages=config.session.recent_bot_messages,
    )
    triggers = config.triggers
    evaluator = TriggerEvaluator(
        identity=identity,
        triggers=triggers.keywords,
        help_mentions=triggers.help_mentions,
        context_window=config.session.context_window,
        replies_always_trigger=triggers.replies_always_trigger,
        start_word=triggers.start_word,
        bet_word=triggers.bet_word,
    )
    return Dispatcher(
        transport=transport,
        agent=agent,
        sessions=sessions,
        evaluator=evaluator,
        wallets=FileWalletStore(config.wallet.storage_dir),
        messages=config.messages,
        thread_scope=config.agent.thread_scope,
        identity=identity,
        welcome_enabled=config.transport.welcome_enabled,
        welcome_delay=config.transport.welcome_delay,
    )


# ============================================================================
# Onboard / Setup
# ============================================================================


@app.command()
def onboard():
    """Initialize squabble configuration."""
    from squabble.config.loader import get_config_path, load_config, save_config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if typer.confirm("Overwrite with defaults?"):
            save_config(Config(), config_path)
            console.print(f"[green]✓[/green] Config reset to defaults at {config_path}")
        else:
            save_config(load_config(config_path), config_path)
            console.print(f"[green]✓[/green] Config refreshed at {config_path} (existing values preserved)")
    else:
        save_config(Config(), config_path)
        console.print(f"[green]✓[/green] Created config at {config_path}")

    console.print(f"\n{__logo__} squabble is ready!")
    console.print("\nNext steps:")
    console.print(f"  1. Set [cyan]agent.apiKey[/cyan] and [cyan]api.secret[/cyan] in {config_path}")
    console.print("  2. Start: [cyan]squabble gateway[/cyan]")


# ============================================================================
# Gateway
# ============================================================================


@app.command()
def gateway(
    port: int | None = typer.Option(None, "--port", "-p", help="API port (overrides config)"),
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output"),
):
    """Start the bot: message dispatch, welcome watcher and control API."""
    from squabble.config.loader import load_config

    _setup_logging(verbose)
    config = load_config()
    try:
        config.validate_required()
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    transport = load_transport(config.transport.factory, config)
    dispatcher = _make_dispatcher(config, transport, _make_agent(config))
    console.print(f"{__logo__} Starting squabble gateway as {dispatcher.identity}")

    async def run():
        tasks = [dispatcher.run()]
        if config.api.enabled:
            import uvicorn

            from squabble.api.server import create_app

            api_port = port or config.api.port
            server = uvicorn.Server(
                uvicorn.Config(
                    create_app(transport, config.api.secret),
                    host=config.api.host,
                    port=api_port,
                    log_level="warning",
                )
            )
            console.print(f"[green]✓[/green] API: POST http://{config.api.host}:{api_port}/api/send-message")
            tasks.append(server.serve())
        try:
            await asyncio.gather(*tasks)
        finally:
            await dispatcher.stop()
            await transport.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\nShutting down...")


# ============================================================================
# Local chat
# ============================================================================


@app.command()
def chat(
    message: str = typer.Option(None, "--message", "-m", help="Single message to send"),
    sender: str = typer.Option("local-user", "--sender", "-s", help="Sender id to use"),
    conversation: str = typer.Option("local-chat", "--conversation", "-c", help="Conversation id"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show runtime logs"),
):
    """Talk to the bot locally, with the same triggering rules as the gateway."""
    from squabble.config.loader import load_config

    _setup_logging(logs=logs)
    config = load_config()
    transport = LocalTransport(identity=config.transport.identity or "squabble-local-bot")
    dispatcher = _make_dispatcher(config, transport, _make_agent(config))
    conv = transport.add_conversation(conversation)

    async def send_one(text: str) -> None:
        seen = len(conv.sent)
        envelope = MessageEnvelope(
            id=uuid.uuid4().hex[:12],
            conversation_id=conversation,
            sender_id=sender,
            content=text,
        )
        await dispatcher.handle_message(envelope)
        replies = conv.texts[seen:]
        if not replies:
            console.print("[dim](no response)[/dim]")
        for reply in replies:
            console.print(f"\n{__logo__} {reply}\n", markup=False)

    if message:
        asyncio.run(send_one(message))
        return

    console.print(f"{__logo__} Local chat (type 'exit' or Ctrl+C to quit)\n")

    async def run_interactive():
        while True:
            try:
                user_input = console.input("[bold blue]You:[/bold blue] ")
            except (KeyboardInterrupt, EOFError):
                console.print("\nGoodbye!")
                break
            if user_input.strip().lower() in {"exit", "quit"}:
                console.print("Goodbye!")
                break
            if user_input.strip():
                await send_one(user_input)

    asyncio.run(run_interactive())


# ============================================================================
# Status
# ============================================================================


@app.command()
def status():
    """Show squabble status."""
    from squabble.config.loader import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} squabble Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")
    console.print(f"Model: {config.agent.model}")
    console.print(f"Triggers: {', '.join(config.triggers.keywords)}")
    console.print(
        f"Follow-up: {config.session.state_timeout:g}s timeout, "
        f"{config.session.max_context_messages} turns, "
        f"{config.session.context_window:g}s context window"
    )
    console.print(f"Transport: {config.transport.factory}")
    console.print(
        f"Squabble service: {config.squabble.url or '[red]✗ not set[/red]'}, secret "
        f"{'[green]✓[/green]' if config.squabble.agent_secret else '[red]✗ not set[/red]'}"
    )
    console.print(f"API key: {'[green]✓[/green]' if config.agent.api_key else '[dim]not set[/dim]'}")
    if config.api.enabled:
        console.print(
            f"API: port {config.api.port}, secret "
            f"{'[green]✓[/green]' if config.api.secret else '[red]✗ not set[/red]'}"
        )
    else:
        console.print("API: disabled")


if __name__ == "__main__":
    app()
