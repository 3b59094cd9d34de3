"""
Interactive Shell Mode.

REPL over the stores. Uses Rich for output formatting and basic input
handling; every command calls a store operation and renders the
resulting state.
"""

import shlex
from collections.abc import Awaitable, Callable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from notesync.app import NotesApp
from notesync.core.exceptions import RemoteError
from notesync.models.note import Note, NotePriority, SortDirection, SortField
from notesync.models.user import RegisterRequest

console = Console()


class InteractiveShell:
    """
    Interactive shell for the notes client.

    Usage:
        shell = InteractiveShell(create_app())
        await shell.run()
    """

    def __init__(self, app: NotesApp) -> None:
        self.app = app
        self.running = False
        self.commands: dict[str, Callable[[list[str]], Awaitable[None]]] = {
            "help": self._cmd_help,
            "login": self._cmd_login,
            "register": self._cmd_register,
            "logout": self._cmd_logout,
            "whoami": self._cmd_whoami,
            "list": self._cmd_list,
            "more": self._cmd_more,
            "refresh": self._cmd_refresh,
            "search": self._cmd_search,
            "filter": self._cmd_filter,
            "sort": self._cmd_sort,
            "add": self._cmd_add,
            "edit": self._cmd_edit,
            "toggle": self._cmd_toggle,
            "delete": self._cmd_delete,
            "tags": self._cmd_tags,
            "stats": self._cmd_stats,
            "clear": self._cmd_clear,
            "quit": self._cmd_quit,
            "exit": self._cmd_quit,
        }

    async def run(self) -> None:
        """Run the interactive shell."""
        self.running = True
        await self.app.start()

        console.print(Panel(
            "[bold]NoteSync Shell[/bold]\n"
            "Type [cyan]help[/cyan] for available commands, [cyan]quit[/cyan] to exit.",
            title="Welcome",
        ))
        self._print_session()
        console.print()

        while self.running:
            try:
                user_input = console.input("[bold cyan]>[/bold cyan] ").strip()

                if not user_input:
                    continue

                parts = shlex.split(user_input)
                command = parts[0].lower()
                args = parts[1:]

                if command in self.commands:
                    await self.commands[command](args)
                else:
                    console.print(f"[red]Unknown command: {command}[/red]")
                    console.print("Type [cyan]help[/cyan] for available commands.")

            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit[/dim]")
            except EOFError:
                break
            except (ValueError, RemoteError) as e:
                console.print(f"[red]Error: {e}[/red]")

        await self.app.close()
        console.print("[dim]Goodbye![/dim]")

    # -------------------------------------------------------------------------
    # Session commands
    # -------------------------------------------------------------------------

    async def _cmd_help(self, args: list[str]) -> None:
        """Display help information."""
        table = Table(title="Available Commands", show_header=True)
        table.add_column("Command", style="cyan")
        table.add_column("Description")

        table.add_row("login <email> <password>", "Sign in")
        table.add_row("register <email> <username> <password>", "Create an account and sign in")
        table.add_row("logout", "Sign out")
        table.add_row("whoami", "Show the signed-in user")
        table.add_row("list", "Show loaded notes")
        table.add_row("more", "Load the next page")
        table.add_row("refresh", "Reload from page 1")
        table.add_row("search [text]", "Search notes (no text clears)")
        table.add_row("filter <category|tags|priority|completed> [value]", "Filter notes")
        table.add_row("filter clear", "Clear all filters")
        table.add_row("sort <field> [asc|desc]", "Sort by created_at, updated_at, title or priority")
        table.add_row("add <title> <content> [priority] [category]", "Create a note")
        table.add_row("edit <id> <title> <content>", "Edit a note")
        table.add_row("toggle <id>", "Toggle completion")
        table.add_row("delete <id>", "Delete a note")
        table.add_row("tags", "Show categories and tags")
        table.add_row("stats", "Show note counters")
        table.add_row("clear", "Clear the screen")
        table.add_row("quit / exit", "Exit the shell")

        console.print(table)

    async def _cmd_login(self, args: list[str]) -> None:
        if len(args) != 2:
            console.print("[yellow]Usage: login <email> <password>[/yellow]")
            return
        if await self.app.session.login(args[0], args[1]):
            await self.app.collection.initialize()
        self._print_session()

    async def _cmd_register(self, args: list[str]) -> None:
        if len(args) < 3:
            console.print("[yellow]Usage: register <email> <username> <password> [first] [last][/yellow]")
            return
        request = RegisterRequest(
            email=args[0],
            username=args[1],
            password=args[2],
            first_name=args[3] if len(args) > 3 else None,
            last_name=args[4] if len(args) > 4 else None,
        )
        if await self.app.session.register(request):
            await self.app.collection.initialize()
        self._print_session()

    async def _cmd_logout(self, args: list[str]) -> None:
        await self.app.session.logout()
        self._print_session()

    async def _cmd_whoami(self, args: list[str]) -> None:
        self._print_session()

    # -------------------------------------------------------------------------
    # Collection commands
    # -------------------------------------------------------------------------

    async def _cmd_list(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        self._print_notes()

    async def _cmd_more(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        if not self.app.collection.can_load_more:
            console.print("[dim]No more notes to load[/dim]")
            return
        await self.app.collection.load_more_notes()
        self._print_notes()

    async def _cmd_refresh(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        await self.app.collection.refresh_notes()
        await self.app.collection.load_metadata()
        self._print_notes()

    async def _cmd_search(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        await self.app.collection.search_notes(" ".join(args))
        self._print_notes()

    async def _cmd_filter(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        if not args:
            console.print("[yellow]Usage: filter <category|tags|priority|completed|clear> [value][/yellow]")
            return

        collection = self.app.collection
        kind, values = args[0].lower(), args[1:]
        value = values[0] if values else None
        if kind == "clear":
            await collection.clear_all_filters()
        elif kind == "category":
            await collection.filter_by_category(value)
        elif kind == "tags":
            await collection.filter_by_tags([tag for tag in ",".join(values).split(",") if tag])
        elif kind == "priority":
            await collection.filter_by_priority(NotePriority(value.lower()) if value else None)
        elif kind == "completed":
            await collection.filter_by_completion(_parse_bool(value) if value else None)
        else:
            console.print(f"[red]Unknown filter: {kind}[/red]")
            return
        self._print_notes()

    async def _cmd_sort(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        if not args:
            console.print("[yellow]Usage: sort <field> [asc|desc][/yellow]")
            return
        direction = SortDirection(args[1].lower()) if len(args) > 1 else SortDirection.DESC
        await self.app.collection.change_sorting(SortField(args[0].lower()), direction)
        self._print_notes()

    async def _cmd_add(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        if len(args) < 2:
            console.print("[yellow]Usage: add <title> <content> [priority] [category][/yellow]")
            return
        note = Note.create(
            title=args[0],
            content=args[1],
            owner_id=self.app.session.user_id,
            priority=NotePriority(args[2].lower()) if len(args) > 2 else NotePriority.MEDIUM,
            category=args[3] if len(args) > 3 else None,
        )
        created = await self.app.collection.create_note(note)
        if created is not None:
            console.print(f"[green]Created note {created.id}[/green]")
        self._print_error()

    async def _cmd_edit(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        if len(args) != 3:
            console.print("[yellow]Usage: edit <id> <title> <content>[/yellow]")
            return
        note = self.app.collection.get_note_by_id(args[0])
        if note is None:
            console.print(f"[red]Note {args[0]} is not loaded[/red]")
            return
        updated = await self.app.collection.update_note(note.id, note.copy_with(title=args[1], content=args[2]))
        if updated is not None:
            console.print(f"[green]Updated note {updated.id}[/green]")
        self._print_error()

    async def _cmd_toggle(self, args: list[str]) -> None:
        if not self._signed_in() or not args:
            return
        note = await self.app.collection.toggle_note_completion(args[0])
        if note is not None:
            state = "completed" if note.is_completed else "pending"
            console.print(f"[green]Note {note.id} is now {state}[/green]")
        elif not self.app.collection.has_error:
            console.print(f"[red]Note {args[0]} is not loaded[/red]")
        self._print_error()

    async def _cmd_delete(self, args: list[str]) -> None:
        if not self._signed_in() or not args:
            return
        if await self.app.collection.delete_note(args[0]):
            console.print(f"[green]Deleted note {args[0]}[/green]")
        self._print_error()

    async def _cmd_tags(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        collection = self.app.collection
        console.print(f"Categories: {', '.join(collection.categories) or '-'}")
        console.print(f"Tags: {', '.join(collection.tags) or '-'}")

    async def _cmd_stats(self, args: list[str]) -> None:
        if not self._signed_in():
            return
        await self.app.collection.load_metadata()
        table = Table(title="Statistics", show_header=True)
        table.add_column("Counter", style="cyan")
        table.add_column("Value", justify="right")
        for name, value in self.app.collection.statistics.items():
            table.add_row(name, str(value))
        console.print(table)

    async def _cmd_clear(self, args: list[str]) -> None:
        """Clear the screen."""
        console.clear()

    async def _cmd_quit(self, args: list[str]) -> None:
        """Exit the shell."""
        self.running = False

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def _signed_in(self) -> bool:
        if self.app.session.is_authenticated:
            return True
        console.print("[yellow]Please login first[/yellow]")
        return False

    def _print_session(self) -> None:
        session = self.app.session
        if session.error is not None:
            console.print(f"[red]{session.error.message}[/red] [dim]({session.error.code})[/dim]")
            session.clear_error()
        if session.is_authenticated:
            console.print(f"Signed in as [bold]{session.user_display_name}[/bold] <{session.user_email}>")
        else:
            console.print("[dim]Not signed in[/dim]")

    def _print_notes(self) -> None:
        collection = self.app.collection
        pagination = collection.pagination
        table = Table(
            title=f"Notes (page {pagination.page}/{pagination.total_pages or 1}, {pagination.total_count} total)",
            show_header=True,
        )
        table.add_column("ID", style="cyan")
        table.add_column("Done")
        table.add_column("Title")
        table.add_column("Priority")
        table.add_column("Category")
        table.add_column("Tags")

        for note in collection.notes:
            table.add_row(
                note.id or "-",
                "[green]x[/green]" if note.is_completed else " ",
                note.display_title,
                note.priority.display_name,
                note.category or "",
                ", ".join(note.tags),
            )

        console.print(table)
        if collection.has_next:
            console.print("[dim]Type 'more' to load the next page[/dim]")
        self._print_error()

    def _print_error(self) -> None:
        error = self.app.collection.error
        if error is None:
            return
        console.print(f"[red]{error.message}[/red] [dim]({', '.join(error.codes)})[/dim]")
        self.app.collection.clear_error()


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "yes", "1", "done"):
        return True
    if lowered in ("false", "no", "0", "pending"):
        return False
    raise ValueError(f"Not a boolean: {value}")


async def run_shell(app: NotesApp) -> None:
    """Run the interactive shell."""
    shell = InteractiveShell(app)
    await shell.run()
