from typing import Iterable, List, Set

from core.schemas.products import ProductRecord


class ProductDeduplicator:
    """Per-job seen-set. The first sighting of an item id wins."""

    def __init__(self, seen: Iterable[str] = ()):
        self._seen: Set[str] = set(seen)

    def add_new(self, products: Iterable[ProductRecord]) -> List[ProductRecord]:
        """Return only the products not seen before, in their original order."""
        fresh = []
        for product in products:
            if product.item_id in self._seen:
                continue
            self._seen.add(product.item_id)
            fresh.append(product)
        return fresh

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)
