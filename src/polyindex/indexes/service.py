"""Index CRUD, stars and account deletion.

Every operation takes the datastore connection (None when the datastore is not
provisioned) and the per-request RequestContext. Reads degrade to curated-only
output without a datastore; writes raise DatastoreUnavailable. Mutations re-read
the owner from storage and compare it with the caller before touching anything.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, NamedTuple

import duckdb
import structlog

from polyindex.context import RequestContext
from polyindex.errors import DatastoreUnavailable, Forbidden, InvalidRequest, NotFound
from polyindex.indexes.access import can_star, can_view, is_expired, is_owner
from polyindex.indexes.curated import generate_curated_indexes
from polyindex.indexes.ids import new_index_id
from polyindex.indexes.membership import resolve_index_markets
from polyindex.models import DynamicMembership, Index, IndexDraft, Market, StaticMembership, User
from polyindex.storage import indexes as index_store
from polyindex.storage import stars as star_store
from polyindex.storage import users as user_store

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)

MarketsLoader = Callable[[], list[Market]]


class IndexEntry(NamedTuple):
    """An index with the per-caller annotations the API shows next to it."""

    index: Index
    star_count: int = 0
    is_starred: bool = False
    members: list[Market] | None = None  # resolved markets, when they were computed


class StarResult(NamedTuple):
    starred: bool
    star_count: int
    already_starred: bool = False


def _require_datastore(conn: DuckDBPyConnection | None) -> DuckDBPyConnection:
    if conn is None:
        raise DatastoreUnavailable()
    return conn


def _require_owner(conn: DuckDBPyConnection, caller: User, index_id: str) -> None:
    ownership = index_store.get_index_ownership(conn, index_id)
    if ownership is None:
        raise NotFound("Index not found")
    if not is_owner(caller.id, ownership.created_by):
        log.warning("index_forbidden", index_id=index_id, user_id=caller.id)
        raise Forbidden()


def _membership_from_draft(draft: IndexDraft) -> tuple[str, StaticMembership | DynamicMembership]:
    name = (draft.name or "").strip()
    if not name:
        raise InvalidRequest("Name is required")
    # A filters object (even an empty one) makes the index dynamic.
    if draft.filters is not None:
        return name, DynamicMembership(filters=draft.filters)
    if draft.markets:
        return name, StaticMembership(market_ids=list(draft.markets))
    raise InvalidRequest("Either markets or filters are required")


def _annotate(conn: DuckDBPyConnection, indexes: list[Index], caller_id: str | None) -> list[IndexEntry]:
    counts, starred = star_store.star_summary(conn, [i.id for i in indexes], caller_id)
    return [IndexEntry(i, counts.get(i.id, 0), i.id in starred) for i in indexes]


def _curated_entries(markets: list[Market]) -> list[IndexEntry]:
    return [IndexEntry(i, members=resolve_index_markets(i, markets)) for i in generate_curated_indexes(markets)]


def sync_curated_indexes(conn: DuckDBPyConnection, markets: list[Market]) -> list[Index]:
    """Generate curated indexes from the snapshot and upsert them. Failed upserts are logged and skipped."""
    stored = []
    for index in generate_curated_indexes(markets):
        try:
            index_store.upsert_curated_index(conn, index)
        except duckdb.Error as e:
            log.error("curated_upsert_failed", index_id=index.id, error=str(e))
            continue
        stored.append(index)
    return stored


def list_indexes(
    conn: DuckDBPyConnection | None,
    ctx: RequestContext,
    markets: list[Market],
    now: datetime | None = None,
) -> list[IndexEntry]:
    """Public indexes plus the caller's own, curated ones refreshed first. Expired dynamic indexes are dropped."""
    if conn is None:
        log.info("curated_only", reason="datastore_unconfigured")
        return _curated_entries(markets)
    sync_curated_indexes(conn, markets)
    try:
        visible = index_store.list_visible_indexes(conn, ctx.caller_id)
        visible = [i for i in visible if not is_expired(i.filters, now)]
        return _annotate(conn, visible, ctx.caller_id)
    except duckdb.Error as e:
        log.error("indexes_query_failed", error=str(e))
        return _curated_entries(markets)


def get_index(
    conn: DuckDBPyConnection | None,
    ctx: RequestContext,
    index_id: str,
    load_markets: MarketsLoader | None = None,
) -> IndexEntry:
    """Single index. Private indexes are reported as missing to everyone but their owner."""
    if conn is None:
        # Without a datastore only curated indexes exist, rebuilt from the snapshot.
        markets = load_markets() if load_markets else []
        for entry in _curated_entries(markets):
            if entry.index.id == index_id:
                return entry
        raise NotFound("Index not found")
    index = index_store.get_index(conn, index_id)
    if index is None or not can_view(ctx.caller_id, index.created_by, index.is_public):
        raise NotFound("Index not found")
    return _annotate(conn, [index], ctx.caller_id)[0]


def index_markets(
    conn: DuckDBPyConnection | None,
    ctx: RequestContext,
    index_id: str,
    load_markets: MarketsLoader,
) -> IndexEntry:
    """An index together with its members resolved against the live snapshot."""
    markets = load_markets()
    entry = get_index(conn, ctx, index_id, lambda: markets)
    return entry._replace(members=resolve_index_markets(entry.index, markets))


def create_index(conn: DuckDBPyConnection | None, ctx: RequestContext, draft: IndexDraft) -> Index:
    conn = _require_datastore(conn)
    caller = ctx.require_caller()
    name, membership = _membership_from_draft(draft)
    now = datetime.now(timezone.utc)
    index = Index(
        id=new_index_id(),
        name=name,
        description=draft.description,
        created_by=caller.id,
        created_by_username=caller.username,
        is_public=bool(draft.is_public),
        category=draft.category,
        membership=membership,
        created_at=now,
        updated_at=now,
    )
    index_store.insert_index(conn, index)
    log.info("index_created", index_id=index.id, user_id=caller.id, dynamic=index.is_dynamic)
    return index


def update_index(
    conn: DuckDBPyConnection | None,
    ctx: RequestContext,
    index_id: str,
    draft: IndexDraft,
) -> Index:
    """Owner-only full replacement. is_public is left unchanged when not supplied."""
    conn = _require_datastore(conn)
    caller = ctx.require_caller()
    _require_owner(conn, caller, index_id)
    name, membership = _membership_from_draft(draft)
    current = index_store.get_index(conn, index_id)
    if current is None:
        raise NotFound("Index not found")
    updated = current.model_copy(
        update={
            "name": name,
            "description": draft.description,
            "category": draft.category,
            "membership": membership,
            "is_public": current.is_public if draft.is_public is None else draft.is_public,
            "updated_at": datetime.now(timezone.utc),
        }
    )
    index_store.replace_index(conn, updated)
    log.info("index_updated", index_id=index_id, user_id=caller.id)
    return updated


def set_visibility(
    conn: DuckDBPyConnection | None,
    ctx: RequestContext,
    index_id: str,
    is_public: bool,
) -> Index:
    conn = _require_datastore(conn)
    caller = ctx.require_caller()
    _require_owner(conn, caller, index_id)
    index_store.set_index_visibility(conn, index_id, is_public)
    log.info("index_visibility_changed", index_id=index_id, user_id=caller.id, is_public=is_public)
    index = index_store.get_index(conn, index_id)
    if index is None:
        raise NotFound("Index not found")
    return index


def delete_index(conn: DuckDBPyConnection | None, ctx: RequestContext, index_id: str) -> None:
    conn = _require_datastore(conn)
    caller = ctx.require_caller()
    _require_owner(conn, caller, index_id)
    index_store.delete_index(conn, index_id)
    log.info("index_deleted", index_id=index_id, user_id=caller.id)


def list_user_indexes(conn: DuckDBPyConnection | None, ctx: RequestContext) -> list[IndexEntry]:
    """The caller's own indexes, private ones included."""
    if conn is None:
        return []
    caller = ctx.require_caller()
    return _annotate(conn, index_store.list_indexes_by_creator(conn, caller.id), caller.id)


def list_public_indexes_for_username(
    conn: DuckDBPyConnection | None,
    ctx: RequestContext,
    username: str,
) -> list[IndexEntry]:
    if conn is None:
        return []
    user = user_store.get_user_by_username(conn, username)
    if user is None:
        raise NotFound("User not found")
    return _annotate(conn, index_store.list_public_indexes_by_creator(conn, user.id), ctx.caller_id)


def star_index(conn: DuckDBPyConnection | None, ctx: RequestContext, index_id: str) -> StarResult:
    """Star an index once. A repeat call reports already_starred and leaves the count alone."""
    conn = _require_datastore(conn)
    caller = ctx.require_caller()
    ownership = index_store.get_index_ownership(conn, index_id)
    if ownership is None:
        raise NotFound("Index not found")
    if not can_star(caller.id, ownership.created_by, ownership.is_public):
        log.warning("star_forbidden", index_id=index_id, user_id=caller.id)
        raise Forbidden("Can only star public indexes or your own private indexes")
    if star_store.has_star(conn, caller.id, index_id):
        return StarResult(True, star_store.count_stars(conn, index_id), already_starred=True)
    star_store.add_star(conn, caller.id, index_id)
    count = star_store.count_stars(conn, index_id)
    log.info("star_added", index_id=index_id, user_id=caller.id, star_count=count)
    return StarResult(True, count)


def unstar_index(conn: DuckDBPyConnection | None, ctx: RequestContext, index_id: str) -> StarResult:
    conn = _require_datastore(conn)
    caller = ctx.require_caller()
    star_store.remove_star(conn, caller.id, index_id)
    count = star_store.count_stars(conn, index_id)
    log.info("star_removed", index_id=index_id, user_id=caller.id, star_count=count)
    return StarResult(False, count)


def delete_account(conn: DuckDBPyConnection | None, ctx: RequestContext) -> None:
    """Remove the caller's profile and everything it owns, then revoke its sessions."""
    conn = _require_datastore(conn)
    caller = ctx.require_caller()
    user_store.delete_user(conn, caller.id)
    log.info("account_deleted", user_id=caller.id)
    try:
        user_store.delete_credentials(conn, caller.id)
    except duckdb.Error as e:
        log.error("credential_revoke_failed", user_id=caller.id, error=str(e))
