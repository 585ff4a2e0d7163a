"""CLI for the ``budget_assistant`` package.

This module exposes callable command handlers (``cmd_parse``,
``cmd_import`` ...) and a Typer-based console interface. Environment variables
(notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``budget_assistant.api`` and ``budget_assistant.persistence``.

Commands that read state use the database when ``--database-url`` or
``DATABASE_URL`` is set, and the stock defaults otherwise. Commands that write
always require a database.
"""

from __future__ import annotations

import os
import sys
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from dotenv import load_dotenv

from .logging_setup import configure_logging


# ---- Small module-level helpers used by CLI commands -------------------------


def _has_database(database_url: str | None) -> bool:
    return bool(database_url or os.getenv("DATABASE_URL"))


def _load_state(database_url: str | None):
    """Return a snapshot from the database, or the stock defaults without one."""

    from .persistence import Snapshot, load_snapshot

    if _has_database(database_url):
        from .db.client import session_scope

        with session_scope(database_url=database_url) as session:
            return load_snapshot(session)

    from .catalog import CategoryCatalog
    from .memory import MerchantMemory
    from .rewards import default_instruments
    from .tags import TagRegistry

    return Snapshot(
        catalog=CategoryCatalog.default(),
        tags=TagRegistry.default(),
        memory=MerchantMemory(),
        instruments=default_instruments(),
        purchases=[],
    )


def _read_text(path: str) -> str | None:
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
    except PermissionError:
        print(f"Error: Permission denied: {path}", file=sys.stderr)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Unexpected failure reading '{path}': {e}", file=sys.stderr)
    return None


def _fmt_amount(amount: Decimal | None) -> str:
    return "" if amount is None else f"{amount:.2f}"


# ---- Command handlers ---------------------------------------------------------


def cmd_parse(text: str, *, database_url: str | None = None) -> int:
    """Parse a typed description and print the resulting draft.

    Output is one ``key<TAB>value`` line each for merchant, amount, notes and
    category.
    """

    from .api import draft_from_text

    try:
        state = _load_state(database_url)
    except Exception as e:
        print(f"Error: failed to load state: {e}", file=sys.stderr)
        return 1

    draft = draft_from_text(text, memory=state.memory, catalog=state.catalog)
    print(f"merchant\t{draft.merchant}")
    print(f"amount\t{_fmt_amount(draft.amount) if draft.is_valid else ''}")
    print(f"notes\t{draft.notes or ''}")
    print(f"category\t{state.catalog.name_for(draft.category_id)}")
    return 0


def cmd_classify(merchant: str, *, text: str | None = None, database_url: str | None = None) -> int:
    from .api import classify

    try:
        state = _load_state(database_url)
    except Exception as e:
        print(f"Error: failed to load state: {e}", file=sys.stderr)
        return 1

    print(classify(merchant, text, state.memory, state.catalog))
    return 0


def cmd_normalize(path: str, *, receipt: bool = False, database_url: str | None = None) -> int:
    """Normalize an extraction payload file and print the result.

    Transactions print as ``merchant<TAB>amount<TAB>category<TAB>date<TAB>tags``,
    one line each. A receipt prints the same columns for its single line, with
    the recommended card appended.
    """

    from .api import normalize_receipt, normalize_transactions

    raw = _read_text(path)
    if raw is None:
        return 1
    try:
        state = _load_state(database_url)
    except Exception as e:
        print(f"Error: failed to load state: {e}", file=sys.stderr)
        return 1

    allowed = state.catalog.names
    if receipt:
        r = normalize_receipt(raw, allowed, allowed_tags=state.tags.names)
        if not r.is_valid:
            print("Error: receipt analysis has no positive total", file=sys.stderr)
            return 1
        print(
            f"{r.merchant or ''}\t{_fmt_amount(r.total)}\t{r.category or ''}\t\t"
            f"{','.join(r.tags)}\t{r.recommended_card or ''}"
        )
        return 0

    for tx in normalize_transactions(raw, allowed, allowed_tags=state.tags.names):
        day = tx.date.isoformat() if tx.date else ""
        print(f"{tx.merchant}\t{_fmt_amount(tx.amount)}\t{tx.category or ''}\t{day}\t{','.join(tx.tags)}")
    return 0


def cmd_recommend(
    category: str,
    amount: str,
    *,
    show_all: bool = False,
    database_url: str | None = None,
) -> int:
    """Print ``instrument<TAB>rate<TAB>reward`` for the best (or every) instrument."""

    from .api import best_instrument
    from .rewards import compare_instruments

    try:
        value = Decimal(amount.strip().lstrip("$"))
    except InvalidOperation:
        print(f"Error: invalid amount: {amount!r}", file=sys.stderr)
        return 1
    if not value.is_finite() or value <= 0:
        print(f"Error: amount must be positive: {amount!r}", file=sys.stderr)
        return 1

    try:
        state = _load_state(database_url)
    except Exception as e:
        print(f"Error: failed to load state: {e}", file=sys.stderr)
        return 1

    resolved = state.catalog.resolve_name(category)
    if resolved is None:
        print(f"Error: unknown category: {category!r}", file=sys.stderr)
        return 1

    recs = (
        compare_instruments(resolved, value, state.instruments)
        if show_all
        else [best_instrument(resolved, value, state.instruments)]
    )
    for rec in recs:
        print(f"{rec.instrument.name}\t{rec.rate}x\t{_fmt_amount(rec.estimated_reward)}")
    return 0


def cmd_import(
    path: str,
    *,
    database_url: str | None = None,
    create_tags: bool = False,
    accept_all: bool = False,
    ignore_all: bool = False,
) -> int:
    """Import a multi-transaction payload, reviewing likely duplicates.

    Clean purchases are committed directly. Each duplicate candidate is added
    or ignored per ``accept_all``/``ignore_all``, or by asking on the terminal.
    All writes happen in one transaction.
    """

    from .api import drafts_from_transactions, normalize_transactions, screen_import
    from .db.client import session_scope
    from .persistence import accept_duplicate, commit_drafts, save_tags, seed_defaults

    if accept_all and ignore_all:
        print("Error: --accept-all and --ignore-all are mutually exclusive", file=sys.stderr)
        return 1
    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return 1

    raw = _read_text(path)
    if raw is None:
        return 1

    try:
        with session_scope(database_url=database_url) as session:
            state = seed_defaults(session)
            lines = normalize_transactions(raw, state.catalog.names)
            drafts = drafts_from_transactions(
                lines, catalog=state.catalog, tags=state.tags, create_tags=create_tags
            )
            if create_tags:
                save_tags(session, state.tags)
            clean, matches = screen_import(drafts, state.purchases)

            clean_ids = {p.id for p in clean}
            written = commit_drafts(
                session, [d for d in drafts if d.id in clean_ids], catalog=state.catalog
            )

            accepted = 0
            for m in matches:
                if ignore_all:
                    continue
                if not accept_all:
                    prompt = (
                        f"{m.new.merchant} {_fmt_amount(m.new.amount)} on {m.new.date} looks like "
                        f"{m.existing.merchant} {_fmt_amount(m.existing.amount)} on {m.existing.date}. "
                        "Add to budget anyway?"
                    )
                    if not typer.confirm(prompt, default=False):
                        continue
                accept_duplicate(session, m, catalog=state.catalog)
                accepted += 1
    except Exception as e:
        print(f"Error: import failed: {e}", file=sys.stderr)
        return 1

    print(
        f"Imported {len(written)} purchase(s); "
        f"{accepted} duplicate(s) added, {len(matches) - accepted} ignored."
    )
    return 0


def cmd_remember(merchant: str, category: str, *, database_url: str | None = None) -> int:
    from .db.client import session_scope
    from .persistence import load_snapshot, remember_merchant

    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return 1
    try:
        with session_scope(database_url=database_url) as session:
            resolved = load_snapshot(session).catalog.resolve_name(category)
            if resolved is None:
                print(f"Error: unknown category: {category!r}", file=sys.stderr)
                return 1
            if not remember_merchant(session, merchant, resolved):
                print(f"Error: cannot remember merchant {merchant!r}", file=sys.stderr)
                return 1
    except Exception as e:
        print(f"Error: remember failed: {e}", file=sys.stderr)
        return 1
    print(f"{merchant.strip()}\t{resolved}")
    return 0


def cmd_add_tag(name: str, *, database_url: str | None = None) -> int:
    from .db.client import session_scope
    from .persistence import load_snapshot, save_tags

    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return 1
    try:
        with session_scope(database_url=database_url) as session:
            registry = load_snapshot(session).tags
            tag = registry.add(name)
            save_tags(session, registry)
    except Exception as e:
        print(f"Error: add-tag failed: {e}", file=sys.stderr)
        return 1
    print(tag.name)
    return 0


def cmd_add_category(name: str, limit: str, *, database_url: str | None = None) -> int:
    from .db.client import session_scope
    from .persistence import load_snapshot, save_catalog

    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return 1
    try:
        value = Decimal(limit)
    except InvalidOperation:
        print(f"Error: invalid limit: {limit!r}", file=sys.stderr)
        return 1
    try:
        with session_scope(database_url=database_url) as session:
            catalog = load_snapshot(session).catalog
            result = catalog.add(name, value)
            save_catalog(session, catalog)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: add-category failed: {e}", file=sys.stderr)
        return 1
    print(f"{result.category.name}\t{'created' if result.created else 'exists'}")
    return 0


def cmd_init_db(*, database_url: str | None = None) -> int:
    """Create tables and store the stock defaults for anything still empty."""

    from .db.client import init_db

    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return 1
    try:
        init_db(database_url=database_url)
    except Exception as e:
        print(f"Error: init-db failed: {e}", file=sys.stderr)
        return 1
    print("Database initialized.")
    return 0


def cmd_budget(
    *,
    time_range: str = "month",
    since: str | None = None,
    until: str | None = None,
    today: date | None = None,
    database_url: str | None = None,
) -> int:
    """Print spending against limits for a window.

    One ``name<TAB>spent<TAB>limit<TAB>remaining`` line per category, in
    catalog order, then ``Overall`` for the envelope. Lines over their limit
    end with ``<TAB>over``. Spending outside the catalog prints as
    ``Uncategorized<TAB>spent``. ``since``/``until`` override the range.
    """

    from .budget import range_start, summarize_budget

    day = today or date.today()
    try:
        start = date.fromisoformat(since.strip()) if since else range_start(time_range, day)
        end = date.fromisoformat(until.strip()) if until else None
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    try:
        state = _load_state(database_url)
    except Exception as e:
        print(f"Error: failed to load state: {e}", file=sys.stderr)
        return 1

    try:
        summary = summarize_budget(state.purchases, state.catalog, state.budget, start=start, end=end)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    def line(name: str, spent: Decimal, limit: Decimal, over: bool) -> str:
        row = f"{name}\t{_fmt_amount(spent)}\t{_fmt_amount(limit)}\t{_fmt_amount(limit - spent)}"
        return row + "\tover" if over else row

    for c in summary.categories:
        print(line(c.category.name, c.spent, c.category.limit, c.over_limit))
    if summary.uncategorized:
        print(f"Uncategorized\t{_fmt_amount(summary.uncategorized)}")
    print(line("Overall", summary.total_spent, summary.overall_limit, summary.over_limit))
    return 0


def cmd_history(
    category: str | None = None,
    *,
    time_range: str = "month",
    remaining: bool = False,
    today: date | None = None,
    database_url: str | None = None,
) -> int:
    """Print ``date<TAB>amount`` for each day with spending, as a running total.

    With ``remaining`` the amount is what is left of the limit (the category's,
    or the overall envelope without a category).
    """

    from .budget import range_start, remaining_history, spending_history

    try:
        start = range_start(time_range, today or date.today())
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    try:
        state = _load_state(database_url)
    except Exception as e:
        print(f"Error: failed to load state: {e}", file=sys.stderr)
        return 1

    limit = state.budget.overall_limit
    category_id = None
    if category is not None:
        found = state.catalog.find(category)
        if found is None:
            print(f"Error: unknown category: {category!r}", file=sys.stderr)
            return 1
        limit, category_id = found.limit, found.id

    points = spending_history(state.purchases, category_id=category_id, start=start)
    if remaining:
        points = remaining_history(points, limit)
    for pt in points:
        print(f"{pt.day.isoformat()}\t{_fmt_amount(pt.total)}")
    return 0


def cmd_purchases(*, database_url: str | None = None) -> int:
    """Print ``id<TAB>date<TAB>merchant<TAB>amount<TAB>category`` per stored purchase."""

    try:
        state = _load_state(database_url)
    except Exception as e:
        print(f"Error: failed to load state: {e}", file=sys.stderr)
        return 1
    for p in state.purchases:
        print(
            f"{p.id}\t{p.date.isoformat()}\t{p.merchant}\t{_fmt_amount(p.amount)}\t"
            f"{state.catalog.name_for(p.category_id)}"
        )
    return 0


def cmd_delete(purchase_id: str, *, database_url: str | None = None) -> int:
    from .db.client import session_scope
    from .persistence import delete_purchase

    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return 1
    try:
        pid = uuid.UUID(purchase_id.strip())
    except ValueError:
        print(f"Error: invalid purchase id: {purchase_id!r}", file=sys.stderr)
        return 1
    try:
        with session_scope(database_url=database_url) as session:
            deleted = delete_purchase(session, pid)
    except Exception as e:
        print(f"Error: delete failed: {e}", file=sys.stderr)
        return 1
    if not deleted:
        print(f"Error: no purchase with id {pid}", file=sys.stderr)
        return 1
    print(f"Deleted {pid}.")
    return 0


def cmd_set_budget(limit: str, *, database_url: str | None = None) -> int:
    from .budget import BudgetEnvelope
    from .db.client import session_scope
    from .persistence import save_budget

    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return 1
    try:
        envelope = BudgetEnvelope(overall_limit=Decimal(limit.strip().lstrip("$")))
    except (InvalidOperation, ValueError):
        print(f"Error: invalid overall limit: {limit!r}", file=sys.stderr)
        return 1
    try:
        with session_scope(database_url=database_url) as session:
            save_budget(session, envelope)
    except Exception as e:
        print(f"Error: set-budget failed: {e}", file=sys.stderr)
        return 1
    print(f"Overall\t{_fmt_amount(envelope.overall_limit)}")
    return 0


def cmd_clear(*, yes: bool = False, database_url: str | None = None) -> int:
    """Delete every purchase and reset categories, memory and the envelope."""

    from .db.client import session_scope
    from .persistence import clear_purchases_and_budgets

    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set in the environment.", file=sys.stderr)
        return 1
    if not yes and not typer.confirm("Delete all purchases and reset budgets?", default=False):
        print("Nothing cleared.")
        return 0
    try:
        with session_scope(database_url=database_url) as session:
            removed = clear_purchases_and_budgets(session)
    except Exception as e:
        print(f"Error: clear failed: {e}", file=sys.stderr)
        return 1
    print(f"Cleared {removed} purchase(s).")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Categorize purchases, normalize extraction output, and pick the best card. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)

_DB_HELP = "Override DATABASE_URL (falls back to env var)."


@app.command("parse")
def parse_cmd(
    text: str = typer.Argument(..., help='Purchase description, e.g. "$60 at Olive Garden for dinner".'),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_parse(text, database_url=database_url))


@app.command("classify")
def classify_cmd(
    merchant: str = typer.Argument(..., help="Merchant name."),
    text: str | None = typer.Option(None, "--text", help="Accompanying free text."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_classify(merchant, text=text, database_url=database_url))


@app.command("normalize")
def normalize_cmd(
    path: Path = typer.Argument(..., dir_okay=False, help="File holding the extraction service's reply."),
    receipt: bool = typer.Option(False, "--receipt", help="Treat the payload as a single receipt."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_normalize(str(path), receipt=receipt, database_url=database_url))


@app.command("recommend")
def recommend_cmd(
    category: str = typer.Argument(..., help="Category name."),
    amount: str = typer.Argument(..., help="Purchase amount."),
    show_all: bool = typer.Option(False, "--all", help="List every instrument, in configured order."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_recommend(category, amount, show_all=show_all, database_url=database_url))


@app.command("import")
def import_cmd(
    path: Path = typer.Argument(..., dir_okay=False, help="Multi-transaction extraction payload."),
    create_tags: bool = typer.Option(False, "--create-tags", help="Create tags that do not exist yet."),
    accept_all: bool = typer.Option(False, "--accept-all", help="Add every likely duplicate."),
    ignore_all: bool = typer.Option(False, "--ignore-all", help="Ignore every likely duplicate."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(
        cmd_import(
            str(path),
            database_url=database_url,
            create_tags=create_tags,
            accept_all=accept_all,
            ignore_all=ignore_all,
        )
    )


@app.command("remember")
def remember_cmd(
    merchant: str = typer.Argument(...),
    category: str = typer.Argument(...),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    """Always classify MERCHANT as CATEGORY."""

    raise typer.Exit(cmd_remember(merchant, category, database_url=database_url))


@app.command("add-tag")
def add_tag_cmd(
    name: str = typer.Argument(...),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_add_tag(name, database_url=database_url))


@app.command("add-category")
def add_category_cmd(
    name: str = typer.Argument(...),
    limit: str = typer.Argument("0", help="Monthly spending limit."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_add_category(name, limit, database_url=database_url))


@app.command("init-db")
def init_db_cmd(database_url: str | None = typer.Option(None, help=_DB_HELP)) -> None:
    raise typer.Exit(cmd_init_db(database_url=database_url))


@app.command("budget")
def budget_cmd(
    time_range: str = typer.Option("month", "--range", help="month, 30d, 3m, 6m, year or all."),
    since: str | None = typer.Option(None, "--since", help="First day (YYYY-MM-DD); overrides --range."),
    until: str | None = typer.Option(None, "--until", help="Last day (YYYY-MM-DD)."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    """Show spending against each category limit and the overall envelope."""

    raise typer.Exit(cmd_budget(time_range=time_range, since=since, until=until, database_url=database_url))


@app.command("history")
def history_cmd(
    category: str | None = typer.Argument(None, help="Limit to one category."),
    time_range: str = typer.Option("month", "--range", help="month, 30d, 3m, 6m, year or all."),
    remaining: bool = typer.Option(False, "--remaining", help="Show what is left of the limit."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(
        cmd_history(category, time_range=time_range, remaining=remaining, database_url=database_url)
    )


@app.command("purchases")
def purchases_cmd(database_url: str | None = typer.Option(None, help=_DB_HELP)) -> None:
    raise typer.Exit(cmd_purchases(database_url=database_url))


@app.command("delete")
def delete_cmd(
    purchase_id: str = typer.Argument(..., help="Purchase id, as printed by `purchases`."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_delete(purchase_id, database_url=database_url))


@app.command("set-budget")
def set_budget_cmd(
    limit: str = typer.Argument(..., help="Overall spending limit."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_set_budget(limit, database_url=database_url))


@app.command("clear")
def clear_cmd(
    yes: bool = typer.Option(False, "--yes", help="Do not ask for confirmation."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    raise typer.Exit(cmd_clear(yes=yes, database_url=database_url))


@app.callback()
def _root(
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="-v for progress, -vv for debug and SQL."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(verbose=verbose)


if __name__ == "__main__":  # pragma: no cover
    app()
