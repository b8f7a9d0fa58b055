# src/pocket_todo/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.state import AppState
from ..errors import (
    DuplicateEmailError,
    NoUserLoggedInError,
    PocketTodoError,
    StorageUnavailableError,
    TaskNotFoundError,
)
from ..records import api
from ..records.dates import parse_due_date, to_iso_z
from ..records.models import TaskView
from ..records.views import filter_tasks, format_due_date, sort_tasks, task_stats

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Core errors are turned into short failure messages; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                return await cast(CommandHandler3, handler)(state, args, emit)
            return await cast(CommandHandler2, handler)(state, args)
        except NoUserLoggedInError:
            return "Please /login first."
        except DuplicateEmailError:
            return "Registration failed: email already registered."
        except TaskNotFoundError as e:
            return f"No task with id {e.task_id}."
        except StorageUnavailableError:
            logger.exception("Storage failure in /%s", name)
            return "Storage is unavailable, please try again."
        except (PocketTodoError, ValueError) as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _parse_id(raw: str) -> int:
    try:
        return int(raw.lstrip("#"))
    except ValueError:
        raise ValueError(f"Not an id: {raw!r}") from None


def _parse_due(raw: str) -> str:
    dt = parse_due_date(raw)
    if dt is None:
        raise ValueError(f"Invalid date: {raw!r} (use YYYY-MM-DD or YYYY-MM-DDTHH:MM)")
    return to_iso_z(dt)


def _render(view: TaskView) -> str:
    t = view.task
    mark = "x" if t.status == "completed" else " "
    cat = f" [{view.category.name}]" if view.category is not None else ""
    desc = f" - {t.description}" if t.description else ""
    return f"[{mark}] #{t.id} {t.title}{desc} (due {format_due_date(t.due_date)}, {t.priority}){cat}"


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_register(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /register <email> <password>"
    user = await state.records.register_user(args[0], args[1])
    return f"Registration successful (user #{user.id}). Now /login."


async def cmd_login(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /login <email> <password>"
    user = await api.login(state, args[0], args[1])
    if user is None:
        return "Invalid credentials."
    if state.notifier.permission_granted is None:
        await state.notifier.request_permission()
    return f"Logged in as {user.email}."


async def cmd_logout(state: AppState, args: list[str]) -> str:
    await api.logout(state)
    return "Logged out."


async def cmd_whoami(state: AppState, args: list[str]) -> str:
    if state.session is None:
        return "Not logged in."
    return f"{state.session.email} (user #{state.session.id})"


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <due> <priority> [@category_id] <title...> [| description...]
    """
    if len(args) < 3:
        return "Usage: /add <due> <low|medium|high> [@category_id] <title> [| description]"

    due = _parse_due(args[0])
    priority = args[1]
    rest = args[2:]

    category_id: int | None = None
    if rest and rest[0].startswith("@"):
        category_id = _parse_id(rest[0][1:])
        rest = rest[1:]

    text = " ".join(rest)
    title, _, description = text.partition("|")
    task = await api.save_task(
        state,
        title=title.strip(),
        description=description.strip(),
        due_date=due,
        priority=priority,
        category_id=category_id,
    )
    return f"Task #{task.id} created."


async def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                     -> every task
    /list pending milk        -> pending tasks whose title contains "milk"
    """
    user = api.require_session(state)
    status = "all"
    if args and args[0].lower() in ("all", "pending", "completed"):
        status = args[0].lower()
        args = args[1:]

    views = await state.records.get_tasks(user.id)
    views = sort_tasks(filter_tasks(views, status=status, query=" ".join(args)), by=state.sort_by)
    if not views:
        return "No tasks."
    return "\n".join(_render(v) for v in views)


async def cmd_sort(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() not in ("due", "priority"):
        return "Usage: /sort due | /sort priority"
    state.sort_by = "priority" if args[0].lower() == "priority" else "due_date"
    return f"Sorting by {args[0].lower()}."


async def cmd_done(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /done <task_id>"
    api.require_session(state)
    task = await api.toggle_task(state, _parse_id(args[0]))
    return f"Task #{task.id} is now {task.status}."


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <id> title <text...>
    /edit <id> description <text...>
    /edit <id> due <date>
    /edit <id> priority <low|medium|high>
    /edit <id> category <category_id|none>
    """
    if len(args) < 3:
        return "Usage: /edit <task_id> <title|description|due|priority|category> <value>"
    api.require_session(state)

    task_id = _parse_id(args[0])
    field = args[1].lower()
    value = " ".join(args[2:])

    if field in ("title", "description", "priority"):
        updates: dict[str, object] = {field: value}
    elif field == "due":
        updates = {"due_date": _parse_due(value)}
    elif field == "category":
        updates = {"category_id": None if value.lower() == "none" else _parse_id(value)}
    else:
        return f"Unknown field: {field}"

    task = await api.edit_task(state, task_id, updates)
    return f"Task #{task.id} updated."


async def cmd_delete(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /delete <task_id>"
    api.require_session(state)
    await api.remove_task(state, _parse_id(args[0]))
    return "Deleted."


async def cmd_cat(state: AppState, args: list[str]) -> str:
    """
    /cat                      -> list categories
    /cat add <name> [#rrggbb] -> create a category
    """
    if args and args[0].lower() == "add":
        if len(args) < 2:
            return "Usage: /cat add <name> [#rrggbb]"
        color = "#000000"
        name_parts = args[1:]
        if len(name_parts) > 1 and name_parts[-1].startswith("#"):
            color = name_parts[-1]
            name_parts = name_parts[:-1]
        category = await state.records.create_category(" ".join(name_parts), color)
        return f"Category @{category.id} {category.name} created."

    categories = await state.records.get_categories()
    if not categories:
        return "No categories. Use /cat add <name> [#rrggbb]."
    return "\n".join(f"@{c.id} {c.name} ({c.color})" for c in categories)


async def cmd_stats(state: AppState, args: list[str]) -> str:
    user = api.require_session(state)
    stats = task_stats(await state.records.get_tasks(user.id))
    return f"Total: {stats.total}  Pending: {stats.pending}  Completed: {stats.completed}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("register", cmd_register, help_text="Create an account: /register <email> <password>.")
registry.register("login", cmd_login, help_text="Log in: /login <email> <password>.")
registry.register("logout", cmd_logout, help_text="Log out.")
registry.register("whoami", cmd_whoami, help_text="Show the logged-in user.")
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <due> <priority> [@category] <title> [| description].",
)
registry.register("list", cmd_list, help_text="List tasks: /list [all|pending|completed] [search].", aliases=["ls"])
registry.register("sort", cmd_sort, help_text="Order /list by due date or priority: /sort due|priority.")
registry.register("done", cmd_done, help_text="Toggle completion: /done <task_id>.")
registry.register("edit", cmd_edit, help_text="Edit one field: /edit <task_id> <field> <value>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <task_id>.", aliases=["rm"])
registry.register("cat", cmd_cat, help_text="Categories: /cat | /cat add <name> [#rrggbb].")
registry.register("stats", cmd_stats, help_text="Count total/pending/completed tasks.")
