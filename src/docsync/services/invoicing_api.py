from __future__ import annotations

import logging

from docsync.domain.errors import ApiError
from docsync.domain.models import ProductDocument, SalesDocument, Stream, WarehouseDocument, required_id

log = logging.getLogger("docsync.fetch")

PAGE_SIZE = 100

LIST_ENDPOINTS = {
    Stream.PRODUCTS: "products.json",
    Stream.WAREHOUSE: "warehouse_documents.json",
    Stream.SALES: "invoices.json",
}

EXTRA_PARAMS = {
    Stream.PRODUCTS: {},
    Stream.WAREHOUSE: {},
    Stream.SALES: {"include_positions": "true", "period": "all"},
}


class InvoicingApi:
    """Paginated collection endpoints of the invoicing service."""

    def __init__(self, fetcher, page_size: int = PAGE_SIZE):
        self.fetcher = fetcher
        self.page_size = int(page_size)

    def list_page(self, stream: Stream, page: int) -> list[dict]:
        stream = Stream(stream)
        if page < 1:
            raise ValueError("page must be >= 1")
        params = {"page": int(page), "per_page": self.page_size}
        params.update(EXTRA_PARAMS[stream])
        data = self.fetcher.fetch(LIST_ENDPOINTS[stream], params)
        if not isinstance(data, list):
            raise ApiError(f"Expected a list from {LIST_ENDPOINTS[stream]} page={page}, got {type(data).__name__}")
        log.info("page_fetched stream=%s page=%s records=%s", stream.value, page, len(data))
        return data

    def get_warehouse_document(self, document_id: int) -> dict:
        data = self.fetcher.fetch(f"warehouse_documents/{int(document_id)}.json")
        if not isinstance(data, dict):
            raise ApiError(f"Expected an object for warehouse document {document_id}")
        return data

    def load_document(self, stream: Stream, summary: dict):
        """Turn a list-page record into a typed document, fetching nested detail where the list omits it."""
        stream = Stream(stream)
        if stream is Stream.PRODUCTS:
            return ProductDocument.from_payload(summary)
        if stream is Stream.WAREHOUSE:
            document_id = required_id(summary, "id", "Warehouse document")
            return WarehouseDocument.from_payload(self.get_warehouse_document(document_id))
        return SalesDocument.from_payload(summary)
