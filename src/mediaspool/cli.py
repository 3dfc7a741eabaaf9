"""Command-line interface for MediaSpool."""

import logging
import os
import sys
from pathlib import Path

import click
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import (
    MediaSpoolConfig,
    create_sample_config,
    load_config,
    load_transcode_settings,
)
from .core.daemon import MediaSpoolDaemon
from .error_handling import ConfigurationError, MediaSpoolError, check_dependencies
from .process_lock import ProcessLock
from .services.notify import NotificationService
from .storage import (
    Database,
    DownloadStore,
    SettingsStore,
    SubscriptionStore,
    VideoStatus,
    VideoStore,
)

console = Console()

STATUS_COLORS = {
    "pending": "yellow",
    "downloading": "blue",
    "completed": "green",
    "waiting": "yellow",
    "transcoding": "blue",
    "finished": "green",
    "error": "red",
}


def setup_logging(
    *,
    verbose: bool = False,
    config: MediaSpoolConfig | None = None,
) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO

    cleanup_logging()

    show_path = level == logging.DEBUG
    handlers: list[logging.Handler] = [
        RichHandler(console=console, rich_tracebacks=True, show_path=show_path),
    ]

    if config and config.log_dir:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_dir / "mediaspool.log")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            ),
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


def cleanup_logging() -> None:
    """Clean up logging handlers to prevent ResourceWarnings."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler, logging.FileHandler):
            handler.close()
            root_logger.removeHandler(handler)


def open_database(config: MediaSpoolConfig) -> Database:
    config.ensure_directories()
    return Database(config.database_path)


def format_status(status: object) -> str:
    status_str = status.value if hasattr(status, "value") else str(status)
    color = STATUS_COLORS.get(status_str, "white")
    return f"[{color}]{status_str.title()}[/{color}]"


def format_file_size(size_bytes: int | None) -> str:
    """Format file size in bytes to human readable format."""
    if size_bytes is None:
        return "-"
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    if size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"


def stats_table(stats: dict[str, int]) -> Table:
    table = Table()
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for status, count in stats.items():
        table.add_row(format_status(status), str(count))
    return table


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Configuration file path",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """MediaSpool - Download, transcode and publish web video."""
    try:
        ctx.ensure_object(dict)
        loaded_config = load_config(config)
        ctx.obj["config"] = loaded_config
        ctx.obj["verbose"] = verbose

        setup_logging(verbose=verbose, config=loaded_config)
    except (OSError, ValueError, RuntimeError) as e:
        config_error = ConfigurationError(
            f"Failed to load configuration: {e}",
            config_path=config,
            solution="Run 'mediaspool config validate' to check your configuration file",
        )
        console.print(f"[red]Configuration Error:[/red] {config_error}")
        sys.exit(1)


@cli.group("config")
def config_cmd() -> None:
    """Configuration management commands."""


@config_cmd.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: MediaSpoolConfig = ctx.obj["config"]

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("Download Directory", str(config.download_dir))
    table.add_row("Output Directory", str(config.output_dir))
    table.add_row("Log Directory", str(config.log_dir))
    table.add_row("FFmpeg", config.ffmpeg_binary)
    table.add_row("FFprobe", config.ffprobe_binary)
    table.add_row("Max Concurrent Downloads", str(config.max_concurrent_downloads))
    table.add_row("Download Poll Interval", f"{config.download_poll_interval}s")
    table.add_row("Transcode Poll Interval", f"{config.transcode_poll_interval}s")
    table.add_row(
        "Telegram Bot Token", "***" if config.telegram_bot_token else "Not configured",
    )

    console.print(table)


@config_cmd.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Validate current configuration."""
    config: MediaSpoolConfig = ctx.obj["config"]

    console.print("[bold]Configuration Validation[/bold]")

    errors = []

    for name, path in [
        ("Download", config.download_dir),
        ("Output", config.output_dir),
        ("Log", config.log_dir),
    ]:
        try:
            path.mkdir(parents=True, exist_ok=True)
            console.print(f"[green]✓[/green] {name} directory: {path}")
        except OSError as e:
            console.print(f"[red]✗[/red] {name} directory: {e}")
            errors.append(f"{name} directory: {e}")

    for dep_error in check_dependencies(config.ffmpeg_binary, config.ffprobe_binary):
        console.print(f"[red]✗[/red] {dep_error.message}")
        errors.append(dep_error.message)

    if config.telegram_bot_token:
        console.print("[green]✓[/green] Telegram bot token configured")
    else:
        console.print("[yellow]⚠[/yellow] Telegram bot token not configured")

    if errors:
        console.print(f"\n[red]Found {len(errors)} configuration errors[/red]")
        sys.exit(1)
    else:
        console.print("\n[green]Configuration is valid[/green]")


@config_cmd.command("init")
@click.option(
    "--path",
    "-p",
    type=click.Path(path_type=Path),
    default=Path.home() / ".config" / "mediaspool" / "config.toml",
    help="Path for the configuration file",
)
def config_init(path: Path) -> None:
    """Create a sample configuration file."""
    try:
        create_sample_config(path)
        console.print(f"[green]Created sample configuration at {path}[/green]")
        console.print("Please edit the configuration file with your settings.")
    except OSError as e:
        console.print(f"[red]Error creating configuration: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--systemd", is_flag=True, help="Running under systemd (internal)")
@click.pass_context
def start(ctx: click.Context, systemd: bool) -> None:
    """Start the download and transcode daemon."""
    config: MediaSpoolConfig = ctx.obj["config"]

    missing = check_dependencies(config.ffmpeg_binary, config.ffprobe_binary)
    if missing:
        for error in missing:
            error.display_to_user()
        sys.exit(1)

    mediaspool_daemon = MediaSpoolDaemon(config)

    try:
        if systemd or os.getenv("INVOCATION_ID"):
            mediaspool_daemon.start_systemd_mode()
        else:
            mediaspool_daemon.start_daemon()
    except RuntimeError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@cli.command()
def stop() -> None:
    """Stop running MediaSpool process."""
    process_info = ProcessLock.find_mediaspool_process()

    if not process_info:
        console.print("[yellow]MediaSpool is not running[/yellow]")
        return

    pid, mode = process_info
    console.print(f"[blue]Stopping MediaSpool {mode} mode (PID {pid})...[/blue]")

    if ProcessLock.stop_process(pid):
        console.print("[green]MediaSpool stopped[/green]")
    else:
        console.print(f"[red]Failed to stop MediaSpool process {pid}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show daemon status and job statistics."""
    config: MediaSpoolConfig = ctx.obj["config"]

    console.print("[bold]System Status[/bold]")

    process_info = ProcessLock.find_mediaspool_process()
    if process_info:
        pid, mode = process_info
        console.print(f"🟢 MediaSpool: [green]Running in {mode} mode (PID {pid})[/green]")
    else:
        console.print("🔴 MediaSpool: [red]Not running[/red]")

    if check_dependencies(config.ffmpeg_binary, config.ffprobe_binary):
        console.print("🎞️ FFmpeg: [red]Not available[/red]")
    else:
        console.print("🎞️ FFmpeg: Available")

    if config.telegram_bot_token:
        console.print("📱 Notifications: Configured")
    else:
        console.print("📱 Notifications: [yellow]Not configured[/yellow]")

    database = open_database(config)
    for title, stats in [
        ("Downloads", DownloadStore(database).get_stats()),
        ("Videos", VideoStore(database).get_stats()),
    ]:
        console.print(f"\n[bold]{title}[/bold]")
        if stats:
            console.print(stats_table(stats))
        else:
            console.print("None")


@cli.group()
def download() -> None:
    """Download queue commands."""


@download.command("add")
@click.argument("url")
@click.option("--title", "-t", required=True, help="Title for the video")
@click.pass_context
def download_add(ctx: click.Context, url: str, title: str) -> None:
    """Queue a URL for download."""
    config: MediaSpoolConfig = ctx.obj["config"]
    store = DownloadStore(open_database(config))

    try:
        job = store.add_download(title, url)
    except MediaSpoolError as e:
        e.display_to_user()
        sys.exit(1)

    console.print(f"[green]Queued download {job.job_id}: {job.title}[/green]")


@download.command("list")
@click.option("--search", "-s", help="Case-insensitive title filter")
@click.option("--sort", default="-created_at", show_default=True, help="Column, '-' for descending")
@click.option("--limit", "-n", type=int, default=20, show_default=True)
@click.option("--offset", type=int, default=0)
@click.pass_context
def download_list(
    ctx: click.Context,
    search: str | None,
    sort: str,
    limit: int,
    offset: int,
) -> None:
    """List downloads."""
    config: MediaSpoolConfig = ctx.obj["config"]
    store = DownloadStore(open_database(config))

    try:
        items, total, filtered = store.list_downloads(search, sort, offset, limit)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not items:
        console.print("No downloads")
        return

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Created")
    table.add_column("Error")

    for item in items:
        table.add_row(
            str(item.job_id),
            item.title,
            format_status(item.status),
            item.created_at.strftime("%Y-%m-%d %H:%M"),
            item.error_message or "",
        )

    console.print(table)
    console.print(f"[dim]Showing {len(items)} of {filtered} ({total} total)[/dim]")


@download.command("remove")
@click.argument("job_id", type=int)
@click.pass_context
def download_remove(ctx: click.Context, job_id: int) -> None:
    """Remove a download and its partial file."""
    config: MediaSpoolConfig = ctx.obj["config"]
    store = DownloadStore(open_database(config))

    if store.delete_download(job_id, config.download_dir):
        console.print(f"[green]Removed download {job_id}[/green]")
    else:
        console.print(f"[red]Download {job_id} not found[/red]")
        sys.exit(1)


@cli.group()
def video() -> None:
    """Video commands."""


@video.command("list")
@click.option(
    "--status",
    "status_filter",
    type=click.Choice([s.value for s in VideoStatus]),
    help="Only show videos in this status",
)
@click.pass_context
def video_list(ctx: click.Context, status_filter: str | None) -> None:
    """List videos."""
    config: MediaSpoolConfig = ctx.obj["config"]
    store = VideoStore(open_database(config))

    videos = store.list_videos(VideoStatus(status_filter) if status_filter else None)
    if not videos:
        console.print("No videos")
        return

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Paused")
    table.add_column("Size")
    table.add_column("Output")

    for item in videos:
        table.add_row(
            str(item.job_id),
            item.title or "-",
            format_status(item.status),
            "yes" if item.not_transcoding else "",
            format_file_size(item.after_size or item.original_size),
            str(item.after_path) if item.after_path else item.error_message or "",
        )

    console.print(table)


def _set_paused(ctx: click.Context, video_id: int, paused: bool) -> None:
    config: MediaSpoolConfig = ctx.obj["config"]
    store = VideoStore(open_database(config))

    if not store.set_paused(video_id, paused):
        console.print(f"[red]Video {video_id} not found[/red]")
        sys.exit(1)

    state = "paused" if paused else "resumed"
    console.print(f"[green]Video {video_id} {state}[/green]")


@video.command("pause")
@click.argument("video_id", type=int)
@click.pass_context
def video_pause(ctx: click.Context, video_id: int) -> None:
    """Keep a waiting video from being transcoded."""
    _set_paused(ctx, video_id, paused=True)


@video.command("resume")
@click.argument("video_id", type=int)
@click.pass_context
def video_resume(ctx: click.Context, video_id: int) -> None:
    """Allow a paused video to be transcoded."""
    _set_paused(ctx, video_id, paused=False)


@cli.group()
def settings() -> None:
    """Transcode settings commands."""


@settings.command("show")
@click.pass_context
def settings_show(ctx: click.Context) -> None:
    """Show the transcode settings new jobs will use."""
    config: MediaSpoolConfig = ctx.obj["config"]
    current = SettingsStore(open_database(config)).load()

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in current.model_dump(mode="json").items():
        table.add_row(key, str(value))

    console.print(table)


@settings.command("load")
@click.argument("file_path", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def settings_load(ctx: click.Context, file_path: Path) -> None:
    """Replace the transcode settings from a TOML [transcode] table."""
    config: MediaSpoolConfig = ctx.obj["config"]

    try:
        new_settings = load_transcode_settings(file_path)
    except (OSError, ValueError, PydanticValidationError) as e:
        console.print(f"[red]Invalid settings file: {e}[/red]")
        sys.exit(1)

    SettingsStore(open_database(config)).save(new_settings)
    console.print("[green]Transcode settings updated[/green]")


@cli.command()
@click.argument("video_id", type=int)
@click.argument("chat_id")
@click.option("--reply-to", type=int, help="Message id to reply to")
@click.pass_context
def subscribe(ctx: click.Context, video_id: int, chat_id: str, reply_to: int | None) -> None:
    """Notify a Telegram chat when a video finishes."""
    config: MediaSpoolConfig = ctx.obj["config"]
    database = open_database(config)

    if not VideoStore(database).get(video_id):
        console.print(f"[red]Video {video_id} not found[/red]")
        sys.exit(1)

    SubscriptionStore(database).subscribe(video_id, chat_id, reply_to)
    console.print(f"[green]Chat {chat_id} subscribed to video {video_id}[/green]")


@cli.command("test-notify")
@click.argument("chat_id")
@click.pass_context
def test_notify(ctx: click.Context, chat_id: str) -> None:
    """Send a test notification."""
    config: MediaSpoolConfig = ctx.obj["config"]
    database = open_database(config)
    notification_service = NotificationService(config, SubscriptionStore(database))

    if notification_service.test_notifications(chat_id):
        console.print("[green]Test notification sent successfully[/green]")
    else:
        console.print("[red]Failed to send test notification[/red]")
        sys.exit(1)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
