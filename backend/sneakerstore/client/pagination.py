"""Cursor for paginated fetches such as the order history."""
from typing import Any, Awaitable, Callable, Dict, List

from sneakerstore.core.exceptions import RequestInFlightError

FetchPage = Callable[[int, int], Awaitable[Dict[str, Any]]]


class PageCursor:
    """
    Loads pages in order, one request at a time.

    The page number only moves forward after a page arrived, so a failed
    fetch is retried with the same page. Asking for the next page while one
    is loading raises RequestInFlightError.
    """

    def __init__(self, fetch_page: FetchPage, page_size: int = 10, items_key: str = "orders"):
        self.fetch_page = fetch_page
        self.page_size = page_size
        self.items_key = items_key
        self.next_page = 1
        self.has_more = True
        self.in_flight = False
        self.items: List[Any] = []

    async def load_next(self) -> List[Any]:
        if self.in_flight:
            raise RequestInFlightError(f"Page {self.next_page} is still loading")
        if not self.has_more:
            return []

        self.in_flight = True
        try:
            result = await self.fetch_page(self.next_page, self.page_size)
        finally:
            self.in_flight = False

        page_items = result.get(self.items_key, [])
        self.items.extend(page_items)
        self.has_more = bool(result.get("has_more", len(page_items) == self.page_size))
        self.next_page += 1
        return page_items

    def reset(self) -> None:
        self.next_page = 1
        self.has_more = True
        self.items = []
