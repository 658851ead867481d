"""CLI commands for agentpilot."""

import asyncio
import json
import sys

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from agentpilot import __logo__, __version__
from agentpilot.core.types import ACTION_TYPES, PermissionLevel

app = typer.Typer(
    name="agentpilot",
    help=f"{__logo__} agentpilot - chat-driven actions with permissions and confirmations",
    no_args_is_help=True,
)

console = Console()
EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit", ":q"}


def _terminal_safe(text: str, encoding: str | None = None) -> str:
    """Best-effort conversion for terminals that cannot print Unicode content."""
    value = text or ""
    enc = encoding or getattr(sys.stdout, "encoding", None) or "utf-8"
    try:
        value.encode(enc)
        return value
    except (LookupError, UnicodeEncodeError):
        return value.encode(enc, errors="replace").decode(enc, errors="replace")


def _print_agent_response(response: str, render_markdown: bool) -> None:
    """Render assistant response with consistent terminal styling."""
    content = _terminal_safe(response or "")
    body = Markdown(content) if render_markdown else Text(content)
    console.print()
    console.print(
        Panel(
            body,
            title=_terminal_safe(f"{__logo__} agentpilot"),
            title_align="left",
            border_style="cyan",
            padding=(0, 1),
        )
    )


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} agentpilot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """agentpilot - chat-driven actions with permissions and confirmations."""
    pass


# ============================================================================
# Wiring
# ============================================================================


def _open_store(config):
    from agentpilot.db.store import SQLiteStore

    return SQLiteStore(config.database_path)


def _make_provider(config):
    from agentpilot.providers.litellm_provider import LiteLLMProvider

    p = config.providers
    if not p.api_key and not config.agent.model.startswith(("ollama/", "bedrock/")):
        console.print("[red]Error: No API key configured.[/red]")
        console.print("Set providers.apiKey in ~/.agentpilot/config.json")
        raise typer.Exit(1)

    return LiteLLMProvider(
        api_key=p.api_key or None,
        api_base=p.api_base,
        default_model=config.agent.model,
        extra_headers=p.extra_headers,
        max_tokens=config.agent.max_tokens,
        temperature=config.agent.temperature,
    )


def _make_workers(config, store):
    from agentpilot.workers import (
        BrowserWorker,
        EmailWorker,
        FilesWorker,
        NotesWorker,
        SchedulerWorker,
        ShellWorker,
    )

    tools = config.tools
    return [
        BrowserWorker(
            max_chars=tools.web.max_chars,
            timeout=tools.web.timeout,
            max_results=tools.web.max_results,
        ),
        EmailWorker(tools.email),
        FilesWorker(config.workspace_path, restrict_to_workspace=tools.restrict_to_workspace),
        NotesWorker(config.notes_path),
        SchedulerWorker(store),
        ShellWorker(
            timeout=tools.exec.timeout,
            working_dir=str(config.workspace_path),
            deny_patterns=tools.exec.deny_patterns,
            restrict_to_workspace=tools.restrict_to_workspace,
        ),
    ]


def _seed_permissions(config, store) -> int:
    for rule in config.permissions.rules:
        store.set_permission(
            rule.channel_type,
            rule.channel_id,
            rule.action_type,
            PermissionLevel.parse(rule.level),
            user_id=rule.user_id,
        )
    return len(config.permissions.rules)


def _make_engine(config, bus, store, provider=None):
    from agentpilot.agent.confirmations import ConfirmationRegistry
    from agentpilot.agent.context import ContextBuilder, SkillsLoader
    from agentpilot.agent.loop import AgentEngine
    from agentpilot.agent.registry import WorkerRegistry
    from agentpilot.permissions.guard import PermissionGuard

    guard = PermissionGuard(
        store,
        default_level=PermissionLevel.parse(config.permissions.default_level),
        confirm_operations=config.permissions.confirm_operations,
    )
    return AgentEngine(
        bus=bus,
        provider=provider or _make_provider(config),
        store=store,
        guard=guard,
        registry=WorkerRegistry(_make_workers(config, store)),
        context=ContextBuilder(SkillsLoader(config.skills_path)),
        confirmations=ConfirmationRegistry(config.permissions.confirmation_ttl_seconds),
        model=config.agent.model,
        max_iterations=config.agent.max_iterations,
        history_limit=config.agent.history_limit,
    )


# ============================================================================
# Onboard
# ============================================================================


@app.command()
def onboard():
    """Initialize agentpilot configuration and directories."""
    from agentpilot.config.loader import get_config_path, save_config
    from agentpilot.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    save_config(config, config_path)
    console.print(f"[green]✓[/green] Created config at {config_path}")

    for label, path in (
        ("workspace", config.workspace_path),
        ("skills", config.skills_path),
        ("notes", config.notes_path),
    ):
        path.mkdir(parents=True, exist_ok=True)
        console.print(f"[green]✓[/green] Created {label} directory at {path}")

    console.print(f"\n{__logo__} agentpilot is ready!")
    console.print("\nNext steps:")
    console.print("  1. Add your API key to [cyan]~/.agentpilot/config.json[/cyan]")
    console.print("  2. Chat: [cyan]agentpilot agent -m \"Hello!\"[/cyan]")
    console.print("  3. Grant levels: [cyan]agentpilot permissions set telegram <chat> shell execute --user <id>[/cyan]")


# ============================================================================
# Gateway / Server
# ============================================================================


@app.command()
def gateway():
    """Start the agentpilot gateway: channels, agent loop and scheduler."""
    from loguru import logger

    from agentpilot.bus.queue import MessageBus
    from agentpilot.channels.manager import ChannelManager
    from agentpilot.config.loader import load_config
    from agentpilot.core.logger import configure_logger
    from agentpilot.scheduler.service import SchedulerService

    config = load_config()
    configure_logger(config)

    store = _open_store(config)
    seeded = _seed_permissions(config, store)
    bus = MessageBus()
    engine = _make_engine(config, bus, store)
    channels = ChannelManager(config, bus)
    scheduler = SchedulerService(
        store,
        engine,
        channels.send_message,
        reload_debounce_seconds=config.scheduler.reload_debounce_seconds,
    )
    engine.on_event(scheduler.on_agent_event)

    console.print(f"{__logo__} Starting agentpilot gateway...")
    if channels.enabled_channels:
        console.print(f"[green]*[/green] Channels enabled: {', '.join(channels.enabled_channels)}")
    else:
        console.print("[yellow]Warning: No channels enabled[/yellow]")
    if seeded:
        console.print(f"[green]*[/green] Permission rules applied from config: {seeded}")

    async def run():
        if config.scheduler.enabled:
            await scheduler.start()
            console.print(f"[green]*[/green] Scheduler: {len(scheduler.status()['jobs'])} task(s)")
        try:
            await asyncio.gather(engine.run(), channels.start_all())
        finally:
            # Timers stop first so nothing new fires while shutting down
            scheduler.stop()
            engine.stop()
            await channels.stop_all()
            logger.info("Gateway stopped")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\nShutting down...")


# ============================================================================
# Agent Commands
# ============================================================================


@app.command()
def agent(
    message: str = typer.Option(None, "--message", "-m", help="Message to send to the agent"),
    user: str = typer.Option("user", "--user", "-u", help="User id on the cli channel"),
    markdown: bool = typer.Option(True, "--markdown/--no-markdown", help="Render assistant output as Markdown"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show runtime logs during chat"),
):
    """Interact with the agent directly on the cli channel."""
    from loguru import logger

    from agentpilot.bus.queue import MessageBus
    from agentpilot.config.loader import load_config
    from agentpilot.core.logger import configure_logger

    config = load_config()
    configure_logger(config)
    if not logs:
        logger.disable("agentpilot")

    store = _open_store(config)
    engine = _make_engine(config, MessageBus(), store)

    async def send(text: str) -> None:
        with console.status("[dim]agentpilot is thinking...[/dim]", spinner="dots"):
            replies = await engine.process_direct(text, channel="cli", chat_id="direct", sender_id=user)
        for reply in replies:
            _print_agent_response(reply, render_markdown=markdown)

    if message:
        asyncio.run(send(message))
        return

    async def run_interactive():
        console.print(f"{__logo__} Interactive mode (type [bold]exit[/bold] or Ctrl+C to quit)\n")
        while True:
            try:
                text = await asyncio.to_thread(input, "You: ")
            except EOFError:
                break
            command = text.strip()
            if not command:
                continue
            if command.lower() in EXIT_COMMANDS:
                break
            await send(command)
        console.print("\nGoodbye!")

    try:
        asyncio.run(run_interactive())
    except KeyboardInterrupt:
        console.print("\nGoodbye!")


# ============================================================================
# Audit
# ============================================================================


@app.command()
def audit(
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=500, help="Max audit entries"),
):
    """Show recent audit entries."""
    from agentpilot.config.loader import load_config

    store = _open_store(load_config())
    entries = store.get_audit_log(limit=limit)

    if not entries:
        console.print("No audit entries found.")
        return

    table = Table(title="Audit Log (Recent)")
    table.add_column("Time", style="cyan")
    table.add_column("Identity")
    table.add_column("Action")
    table.add_column("Level")
    table.add_column("Status")
    table.add_column("Input", style="white")

    for entry in entries:
        if isinstance(entry.output, dict) and entry.output.get("denied"):
            status = "[red]denied[/red]"
        elif entry.confirmation_required and not entry.confirmed:
            status = "[yellow]pending[/yellow]"
        elif entry.confirmed:
            status = "[green]confirmed[/green]" if entry.confirmation_required else "[green]allowed[/green]"
        else:
            status = "-"
        table.add_row(
            entry.created_at[:19],
            f"{entry.channel_type}:{entry.channel_id}:{entry.user_id}",
            f"{entry.action_type}:{entry.operation}",
            PermissionLevel(entry.permission_level).name,
            status,
            json.dumps(entry.input, ensure_ascii=False)[:60],
        )

    console.print(table)


# ============================================================================
# Permissions
# ============================================================================


permissions_app = typer.Typer(help="Manage permission rules")
app.add_typer(permissions_app, name="permissions")


@permissions_app.command("set")
def permissions_set(
    channel_type: str = typer.Argument(..., help="Channel type (telegram, discord, cli, ...)"),
    channel_id: str = typer.Argument(..., help="Chat/channel id"),
    action_type: str = typer.Argument(..., help=f"Action domain: {', '.join(ACTION_TYPES)}"),
    level: str = typer.Argument(..., help="Level name or number (read_only, communicate, modify, execute, admin)"),
    user_id: str = typer.Option(None, "--user", "-u", help="Scope the rule to one user"),
):
    """Set the permission level for a channel or a user."""
    from agentpilot.config.loader import load_config

    if action_type not in ACTION_TYPES:
        console.print(f"[red]Unknown action type: {action_type}[/red]")
        raise typer.Exit(1)
    try:
        parsed = PermissionLevel.parse(level)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    store = _open_store(load_config())
    rule = store.set_permission(channel_type, channel_id, action_type, parsed, user_id=user_id)
    scope = f"user {user_id}" if user_id else "whole channel"
    console.print(
        f"[green]✓[/green] Rule #{rule.id}: {channel_type}:{channel_id} ({scope}) "
        f"{action_type} = {parsed.name}"
    )


@permissions_app.command("list")
def permissions_list(
    channel_type: str = typer.Option(None, "--channel", "-c", help="Filter by channel type"),
):
    """List permission rules."""
    from agentpilot.config.loader import load_config

    config = load_config()
    rules = _open_store(config).list_permissions(channel_type)
    default = PermissionLevel.parse(config.permissions.default_level)

    if not rules:
        console.print(f"No permission rules. Default level: {default.name}")
        return

    table = Table(title=f"Permission Rules (default: {default.name})")
    table.add_column("ID", style="cyan")
    table.add_column("Channel")
    table.add_column("Chat")
    table.add_column("User")
    table.add_column("Action")
    table.add_column("Level", style="green")

    for rule in rules:
        table.add_row(
            str(rule.id),
            rule.channel_type,
            rule.channel_id,
            rule.user_id or "*",
            rule.action_type,
            PermissionLevel(rule.level).name,
        )

    console.print(table)


@permissions_app.command("remove")
def permissions_remove(
    rule_id: int = typer.Argument(..., help="Rule ID to remove"),
):
    """Remove a permission rule."""
    from agentpilot.config.loader import load_config

    if _open_store(load_config()).delete_permission(rule_id):
        console.print(f"[green]✓[/green] Removed rule {rule_id}")
    else:
        console.print(f"[red]Rule {rule_id} not found[/red]")
        raise typer.Exit(1)


# ============================================================================
# Scheduled tasks
# ============================================================================


tasks_app = typer.Typer(help="Manage scheduled tasks")
app.add_typer(tasks_app, name="tasks")


@tasks_app.command("list")
def tasks_list(
    user_id: str = typer.Option(None, "--user", "-u", help="Only tasks owned by this user"),
):
    """List scheduled tasks."""
    from agentpilot.config.loader import load_config

    tasks = _open_store(load_config()).get_all_scheduled_tasks(user_id=user_id)

    if not tasks:
        console.print("No scheduled tasks.")
        return

    table = Table(title="Scheduled Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Cron")
    table.add_column("Owner")
    table.add_column("Enabled")
    table.add_column("Last Run")

    for task in tasks:
        table.add_row(
            task.id,
            task.name,
            task.cron_expression,
            f"{task.channel_type}:{task.channel_id}:{task.user_id}",
            "[green]yes[/green]" if task.enabled else "[dim]no[/dim]",
            (task.last_run or "never")[:19],
        )

    console.print(table)


@tasks_app.command("remove")
def tasks_remove(
    task_id: str = typer.Argument(..., help="Task ID to remove"),
):
    """Remove a scheduled task."""
    from agentpilot.config.loader import load_config

    if _open_store(load_config()).delete_scheduled_task(task_id):
        console.print(f"[green]✓[/green] Removed task {task_id}")
    else:
        console.print(f"[red]Task {task_id} not found[/red]")
        raise typer.Exit(1)


def _set_task_enabled(task_id: str, enabled: bool) -> None:
    from agentpilot.config.loader import load_config

    if _open_store(load_config()).set_scheduled_task_enabled(task_id, enabled):
        status = "enabled" if enabled else "disabled"
        console.print(f"[green]✓[/green] Task {task_id} {status}")
    else:
        console.print(f"[red]Task {task_id} not found[/red]")
        raise typer.Exit(1)


@tasks_app.command("enable")
def tasks_enable(task_id: str = typer.Argument(..., help="Task ID")):
    """Enable a scheduled task."""
    _set_task_enabled(task_id, True)


@tasks_app.command("disable")
def tasks_disable(task_id: str = typer.Argument(..., help="Task ID")):
    """Disable a scheduled task."""
    _set_task_enabled(task_id, False)


if __name__ == "__main__":
    app()
