from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import replace
from uuid import UUID

from services.portal.app.leads import LeadQuery
from services.portal.app.logging import logger
from services.portal.app.observability import LIVE_FETCH_ERROR_TOTAL, LIVE_RELOAD_TOTAL
from services.portal.app.pagination import DEFAULT_PAGE_SIZE, Page, validate_page_size
from services.portal.app.realtime import ChangeHub, Debouncer, RowChange
from services.portal.app.schemas import LeadOut


FetchLeads = Callable[[LeadQuery], Awaitable[Page[LeadOut]]]
OnUpdate = Callable[[Page[LeadOut]], Awaitable[None]]


class LeadsPageController:
    """
    Page/filter state for one viewer of the leads table.

    Every filter change (search, hide-contacted, hide-assigned, page size) sends the viewer
    back to page 1. Loads never overlap: while one is in flight, further loads return the
    current snapshot and a single follow-up load runs once the in-flight one settles, so the
    snapshot ends up matching the latest state. Fetch failures are logged and leave an empty
    page behind; nothing is retried.
    """

    def __init__(
        self,
        fetch: FetchLeads,
        *,
        scope_user_id: UUID | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        debounce_seconds: float = 0.5,
        on_update: OnUpdate | None = None,
    ):
        self._fetch = fetch
        self._on_update = on_update
        self._query = LeadQuery(page_size=validate_page_size(page_size), assigned_user_id=scope_user_id)
        self._debouncer = Debouncer(debounce_seconds, self._reload_from_change)
        self._unsubscribe: Callable[[], None] | None = None
        self._follow_up = False

        self.is_loading = False
        self.snapshot: Page[LeadOut] = Page(rows=[], total_count=0, current_page=1, page_size=page_size)
        self.last_error: str | None = None

    # State

    @property
    def query(self) -> LeadQuery:
        return self._query

    @property
    def page(self) -> int:
        return self._query.page

    @property
    def page_size(self) -> int:
        return self._query.page_size

    @property
    def search(self) -> str:
        return self._query.search

    @property
    def hide_contacted(self) -> bool:
        return self._query.hide_contacted

    @property
    def hide_assigned(self) -> bool:
        return self._query.hide_assigned

    # Loading

    async def load(self) -> Page[LeadOut]:
        if self.is_loading:
            self._follow_up = True
            return self.snapshot

        self.is_loading = True
        try:
            while True:
                self._follow_up = False
                query = self._query
                try:
                    self.snapshot = await self._fetch(query)
                    self.last_error = None
                except Exception as e:  # noqa: BLE001
                    LIVE_FETCH_ERROR_TOTAL.inc()
                    logger.exception("leads_fetch_failed", page=query.page, page_size=query.page_size)
                    self.last_error = str(e) or e.__class__.__name__
                    self.snapshot = Page(rows=[], total_count=0, current_page=query.page, page_size=query.page_size)
                if not self._follow_up:
                    break
        finally:
            self.is_loading = False
        return self.snapshot

    async def set_page(self, page: int) -> Page[LeadOut]:
        if page < 1:
            raise ValueError("page must be >= 1")
        if self.is_loading or page == self._query.page:
            return self.snapshot
        self._query = replace(self._query, page=page)
        return await self.load()

    async def set_page_size(self, page_size: int) -> Page[LeadOut]:
        self._query = replace(self._query, page_size=validate_page_size(page_size), page=1)
        return await self.load()

    async def set_search(self, search: str) -> Page[LeadOut]:
        self._query = replace(self._query, search=search.strip(), page=1)
        return await self.load()

    async def set_hide_contacted(self, hide: bool) -> Page[LeadOut]:
        self._query = replace(self._query, hide_contacted=hide, page=1)
        return await self.load()

    async def set_hide_assigned(self, hide: bool) -> Page[LeadOut]:
        self._query = replace(self._query, hide_assigned=hide, page=1)
        return await self.load()

    async def set_filters(self, hide_contacted: bool | None = None, hide_assigned: bool | None = None) -> Page[LeadOut]:
        q = self._query
        self._query = replace(
            q,
            hide_contacted=q.hide_contacted if hide_contacted is None else hide_contacted,
            hide_assigned=q.hide_assigned if hide_assigned is None else hide_assigned,
            page=1,
        )
        return await self.load()

    # Change notifications

    def attach(self, hub: ChangeHub) -> None:
        self._unsubscribe = hub.subscribe(["saved"], self.on_row_change)

    def on_row_change(self, change: RowChange) -> None:
        if change.table == "saved":
            self._debouncer.trigger()

    async def _reload_from_change(self) -> None:
        LIVE_RELOAD_TOTAL.labels("row_change").inc()
        page = await self.load()
        if self._on_update is not None:
            await self._on_update(page)

    async def aclose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self._debouncer.aclose()
