"""
Static poster catalog backed by a JSON file.
"""
import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin

from storefront.core.logging import get_logger

logger = get_logger(__name__)

SIZE_TOKENS = {
    "12x18": "12x18_in",
    "18x24": "18x24_in",
    "a2": "A2_420x594mm",
    "a3": "A3_297x420mm",
}


def normalize_mode(mode: Optional[str]) -> str:
    return "ART" if (mode or "").strip().upper() == "ART" else "STRICT"


@dataclass(frozen=True)
class CatalogItem:
    id: str
    title: str
    file_base: str
    print_dir: str = "/prints"
    prices: dict[str, dict[str, Any]] = field(default_factory=dict)

    def price_for(self, paper: str, size: str) -> Optional[Decimal]:
        """Unit price in major units, or None when the variant is not sold."""
        raw = self.prices.get(paper, {}).get(size)
        if raw is None:
            return None
        try:
            price = Decimal(str(raw))
        except InvalidOperation:
            return None
        return price if price > 0 else None

    def print_asset_url(self, site_url: str, size: str, mode: Optional[str]) -> str:
        """Absolute URL of the print file, e.g. /prints/<base>_18x24_in_STRICT.png."""
        size_token = SIZE_TOKENS.get(size.lower(), size)
        path = f"{self.print_dir.rstrip('/')}/{self.file_base}_{size_token}_{normalize_mode(mode)}.png"
        return urljoin(site_url.rstrip("/") + "/", path.lstrip("/"))


class JSONCatalogReader:
    """Reads `{"posters": [...]}` once and serves lookups by id."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._items: Optional[dict[str, CatalogItem]] = None

    def _load(self) -> dict[str, CatalogItem]:
        if self._items is None:
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                logger.warning("Catalog file not found", path=str(self.path))
                data = {}
            self._items = {
                str(entry["id"]): CatalogItem(
                    id=str(entry["id"]),
                    title=entry.get("title") or str(entry["id"]),
                    file_base=entry.get("fileBase") or str(entry["id"]),
                    print_dir=entry.get("printDir") or "/prints",
                    prices=entry.get("prices") or {},
                )
                for entry in data.get("posters", [])
                if entry.get("id")
            }
        return self._items

    def find_by_id(self, item_id: str) -> Optional[CatalogItem]:
        return self._load().get(item_id)
