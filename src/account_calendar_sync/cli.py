"""
Command-line interface for Account Calendar Sync.
"""

import logging
from configparser import ConfigParser
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from account_calendar_sync.models import DEFAULT_AFTER_DAYS
from account_calendar_sync.models import DEFAULT_BEFORE_DAYS
from account_calendar_sync.models import DEFAULT_CONFIG
from account_calendar_sync.models import DEFAULT_EXCLUSIONS
from account_calendar_sync.models import CalendarSyncError
from account_calendar_sync.models import DestinationNotFoundError
from account_calendar_sync.models import MatchPolicy
from account_calendar_sync.models import ProviderUnavailableError
from account_calendar_sync.models import SyncConfig
from account_calendar_sync.provider import CalendarStoreProvider
from account_calendar_sync.provider import connect_with_retry
from account_calendar_sync.sync import CalendarSynchronizer

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Copy calendar events from every mail account into one destination calendar.",
)

# Outcome lines go to stdout; diagnostics go to stderr through logging.
console = Console()
log_console = Console(stderr=True)

PROVIDERS = ("outlook", "eds")


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=log_console)],
        force=True,
    )


def _load_config_file(config_path: Path) -> dict[str, str]:
    if not config_path.exists():
        return {}
    parser = ConfigParser()
    parser.read(config_path)
    if "calendar-sync" not in parser:
        return {}
    return dict(parser["calendar-sync"])


def _split_list(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _config_bool(value: str | None) -> bool:
    if value is None:
        return False
    state_value = ConfigParser.BOOLEAN_STATES.get(value.strip().lower())
    if state_value is None:
        raise typer.BadParameter(f"Not a boolean in config file: {value!r}")
    return state_value


def _config_int(value: str, key: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise typer.BadParameter(f"Not an integer for {key} in config file: {value!r}") from None


def _config_policy(value: str) -> MatchPolicy:
    try:
        return MatchPolicy(value.strip())
    except ValueError:
        choices = ", ".join(p.value for p in MatchPolicy)
        raise typer.BadParameter(
            f"Unknown match_policy in config file: {value!r} (choose from {choices})"
        ) from None


def _build_config(
    destination: str | None,
    before_days: int | None,
    after_days: int | None,
    dry_run: bool,
    extra_folders: list[str] | None,
    exclude: list[str] | None,
    abbreviate: bool,
    match_policy: MatchPolicy | None,
    prune_excluded: bool,
    provider: str | None,
    require_destination: bool = True,
) -> SyncConfig:
    config_file = _load_config_file(state.config_path)

    destination = destination or config_file.get("destination") or ""
    if not destination and require_destination:
        console.print(
            "[bold red]Error:[/] The destination account must be provided via "
            "[cyan]--destination[/] or in the config file."
        )
        raise typer.Exit(1)

    if before_days is None:
        before_days = _config_int(config_file.get("before_days", str(DEFAULT_BEFORE_DAYS)), "before_days")
    if after_days is None:
        after_days = _config_int(config_file.get("after_days", str(DEFAULT_AFTER_DAYS)), "after_days")
    if before_days < 0 or after_days < 0:
        raise typer.BadParameter("--before-days and --after-days must not be negative")

    if extra_folders is None:
        extra_folders = _split_list(config_file.get("extra_folders")) or []
    if exclude is None:
        exclude = _split_list(config_file.get("exclude"))
        if exclude is None:
            exclude = list(DEFAULT_EXCLUSIONS)

    if match_policy is None:
        match_policy = _config_policy(
            config_file.get("match_policy", MatchPolicy.SUBJECT_AND_TIME.value)
        )

    provider = provider or config_file.get("provider", PROVIDERS[0])
    if provider not in PROVIDERS:
        raise typer.BadParameter(f"Unknown provider {provider!r} (choose from {', '.join(PROVIDERS)})")

    return SyncConfig(
        destination=destination,
        before_days=before_days,
        after_days=after_days,
        dry_run=dry_run,
        extra_folder_names=list(extra_folders),
        exclusions=list(exclude),
        abbreviate=abbreviate or _config_bool(config_file.get("abbreviate")),
        match_policy=match_policy,
        prune_excluded=prune_excluded or _config_bool(config_file.get("prune_excluded")),
        verbose=state.verbose,
        provider=provider,
    )


def _make_provider(name: str) -> CalendarStoreProvider:
    """Import the selected provider and acquire it with the bounded retry."""
    if name == "eds":
        from account_calendar_sync.eds_client import EDSStoreProvider

        return connect_with_retry(EDSStoreProvider.connect)

    from account_calendar_sync.outlook_client import OutlookStoreProvider

    return connect_with_retry(OutlookStoreProvider.connect)


def _connect(cfg: SyncConfig) -> CalendarStoreProvider:
    try:
        return _make_provider(cfg.provider)
    except ImportError as e:
        console.print(
            f"[bold red]Error:[/] The {cfg.provider} provider is not installed ({e}). "
            f"Install it with [cyan]pip install account-calendar-sync\\[{cfg.provider}][/]."
        )
        raise typer.Exit(1) from None
    except ProviderUnavailableError as e:
        console.print(f"[bold red]Mail client unavailable:[/] {e}")
        raise typer.Exit(1) from None


def _run_sync(cfg: SyncConfig) -> None:
    """Core sync runner: display panel, run, show results."""
    info = Text()
    info.append("  Destination: ", style="bold")
    info.append(f"{cfg.destination}\n")
    info.append("  Window:      ", style="bold")
    info.append(f"{cfg.before_days} day(s) back, {cfg.after_days} day(s) ahead\n")
    info.append("  Matching:    ", style="bold")
    info.append(cfg.match_policy.value)
    if cfg.extra_folder_names:
        info.append("\n  Extra:       ", style="bold")
        info.append(", ".join(cfg.extra_folder_names))
    if cfg.exclusions:
        info.append("\n  Excluding:   ", style="bold")
        info.append(", ".join(cfg.exclusions))
        if cfg.prune_excluded:
            info.append(" (with subfolders)", style="dim")
    if cfg.abbreviate:
        info.append("\n  Subjects:    ", style="bold")
        info.append("abbreviated", style="yellow")
    if cfg.dry_run:
        info.append("\n  Mode:        ", style="bold")
        info.append("DRY RUN", style="bold magenta")

    log_console.print(Panel(info, title="[bold]Account Calendar Sync[/bold]"))

    provider = _connect(cfg)

    # -- Run -----------------------------------------------------------------
    try:
        stats = CalendarSynchronizer(cfg, provider, console).run()
    except DestinationNotFoundError as e:
        console.print(f"[bold red]Destination calendar not found:[/] {e}")
        raise typer.Exit(1) from None
    except CalendarSyncError as e:
        console.print(f"[bold red]Sync failed:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None
    except Exception as e:
        log_console.print_exception()
        console.print(f"[bold red]Unexpected error:[/] {e}")
        raise typer.Exit(1) from e

    # -- Results table -------------------------------------------------------
    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Stores", str(stats.stores))
    results.add_row("Folders", str(stats.folders))
    if cfg.dry_run:
        results.add_row("Would create", str(stats.would_create))
    else:
        results.add_row("Created", str(stats.created))
    results.add_row("Already present", str(stats.skipped))
    error_val = Text(str(stats.errors))
    if stats.errors == 0:
        error_val.append(" ✓", style="green")
    else:
        error_val.stylize("bold red")
    results.add_row("Errors", error_val)

    log_console.print(Panel(results, title="[bold]Results[/bold]", expand=False))


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

_DEST_OPT = Annotated[
    str | None,
    typer.Option(
        "--destination",
        "-d",
        help="Display name (e-mail address) of the destination account (overrides config)",
    ),
]
_BEFORE_OPT = Annotated[
    int | None,
    typer.Option("--before-days", help=f"Days before now to include (default: {DEFAULT_BEFORE_DAYS})"),
]
_AFTER_OPT = Annotated[
    int | None,
    typer.Option("--after-days", help=f"Days after now to include (default: {DEFAULT_AFTER_DAYS})"),
]
_EXTRA_OPT = Annotated[
    list[str] | None,
    typer.Option("--extra-folder", "-f", help="Additional folder name to sync (repeatable)"),
]
_EXCLUDE_OPT = Annotated[
    list[str] | None,
    typer.Option(
        "--exclude",
        "-x",
        help="Skip folders whose name contains this text, any case (repeatable; "
        f"default: {', '.join(DEFAULT_EXCLUSIONS)})",
    ),
]
_PRUNE_OPT = Annotated[
    bool,
    typer.Option("--prune-excluded", help="Also skip the subfolders of excluded folders"),
]
_PROVIDER_OPT = Annotated[
    str | None,
    typer.Option("--provider", help=f"Mail client to read from: {', '.join(PROVIDERS)}"),
]


@app.command()
def sync(
    destination: _DEST_OPT = None,
    before_days: _BEFORE_OPT = None,
    after_days: _AFTER_OPT = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-n", help="Preview changes without applying")
    ] = False,
    extra_folder: _EXTRA_OPT = None,
    exclude: _EXCLUDE_OPT = None,
    abbreviate: Annotated[
        bool,
        typer.Option("--abbreviate", help="Use short 'TAG : Subj' subjects in the destination"),
    ] = False,
    match_policy: Annotated[
        MatchPolicy | None,
        typer.Option(
            "--match-policy",
            help="How existing destination events are recognised (default: subject-and-time)",
        ),
    ] = None,
    prune_excluded: _PRUNE_OPT = False,
    provider: _PROVIDER_OPT = None,
) -> None:
    """Copy events from every source account into the destination calendar."""
    _run_sync(
        _build_config(
            destination,
            before_days,
            after_days,
            dry_run=dry_run,
            extra_folders=extra_folder,
            exclude=exclude,
            abbreviate=abbreviate,
            match_policy=match_policy,
            prune_excluded=prune_excluded,
            provider=provider,
        )
    )


@app.command()
def stores(
    destination: _DEST_OPT = None,
    extra_folder: _EXTRA_OPT = None,
    exclude: _EXCLUDE_OPT = None,
    prune_excluded: _PRUNE_OPT = False,
    provider: _PROVIDER_OPT = None,
) -> None:
    """List mail stores and the calendar folders a sync would read."""
    from account_calendar_sync.debug import list_stores

    cfg = _build_config(
        destination,
        None,
        None,
        dry_run=True,
        extra_folders=extra_folder,
        exclude=exclude,
        abbreviate=False,
        match_policy=None,
        prune_excluded=prune_excluded,
        provider=provider,
        require_destination=False,
    )
    list_stores(_connect(cfg), cfg, console)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
