"""
Inspection tools for mail stores.

Importable functions:
  list_stores(provider, config, console)  — render a Rich table of every store
                                            and the folders a sync would read
"""

from rich.console import Console
from rich.table import Table
from rich.text import Text

from account_calendar_sync.models import FolderNotFoundError
from account_calendar_sync.models import SyncConfig
from account_calendar_sync.provider import CalendarStoreProvider
from account_calendar_sync.sync.walker import walk_folders


def list_stores(provider: CalendarStoreProvider, config: SyncConfig, console: Console) -> None:
    """Render all stores with their sync-source folders as a Rich table."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Store", style="bold")
    table.add_column("Role")
    table.add_column("Calendar folders", overflow="fold")

    for store in provider.list_stores():
        if store.display_name == config.destination:
            role = Text("Destination", style="magenta")
        else:
            role = Text("Source", style="green")

        try:
            root = provider.get_root_folder(store)
        except FolderNotFoundError as e:
            table.add_row(store.display_name, role, Text(str(e), style="red"))
            continue

        paths = [
            f.path
            for f in walk_folders(
                provider,
                root,
                config.extra_folder_names,
                config.exclusions,
                config.prune_excluded,
            )
        ]
        folders = Text("\n".join(paths)) if paths else Text("(none)", style="dim")
        table.add_row(store.display_name, role, folders)

    console.print(table)
