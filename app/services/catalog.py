"""
Read-only product catalog backed by a JSON file
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

from app.config import get_settings

logger = logging.getLogger(__name__)

# Each product family has a matching add-on family
ADDON_FAMILIES = {
    "programs": "programAddons",
    "freelancer": "freelancerAddons",
    "international": "internationalAddons",
}

MONTHLY = "monthly"


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: int
    type: str = "one-time"

    @property
    def is_monthly(self) -> bool:
        return self.type == MONTHLY


@dataclass(frozen=True)
class CatalogLookup:
    """Outcome of a catalog lookup; `product` is set only when found"""
    product: Optional[Product] = None
    reason: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.product is not None

    @classmethod
    def hit(cls, product: Product) -> "CatalogLookup":
        return cls(product=product)

    @classmethod
    def miss(cls, reason: str) -> "CatalogLookup":
        return cls(reason=reason)


class ProductCatalog:
    """Products grouped by family (programs, programAddons, ...)"""

    def __init__(self, families: Dict[str, Dict[str, Product]]):
        self._families = families

    @classmethod
    def from_dict(cls, raw: dict) -> "ProductCatalog":
        families = {}
        for family, entries in raw.items():
            families[family] = {
                product_id: Product(
                    id=entry.get("id", product_id),
                    name=entry["name"],
                    price=int(entry["price"]),
                    type=entry.get("type", "one-time"),
                )
                for product_id, entry in entries.items()
            }
        return cls(families)

    @classmethod
    def from_file(cls, path: str) -> "ProductCatalog":
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        catalog = cls.from_dict(raw)
        logger.info(f"Loaded product catalog from {path} ({len(raw)} families)")
        return catalog

    def lookup(self, family: str, product_id: str) -> CatalogLookup:
        products = self._families.get(family)
        if products is None:
            logger.warning(f"Product family '{family}' not found in catalog")
            return CatalogLookup.miss(f"Unknown product type '{family}'")

        product = products.get(product_id)
        if product is None:
            logger.warning(f"Product '{product_id}' not found in '{family}'")
            return CatalogLookup.miss(f"Unknown product '{product_id}' in '{family}'")

        return CatalogLookup.hit(product)

    def addon_family(self, family: str) -> Optional[str]:
        return ADDON_FAMILIES.get(family)


@lru_cache()
def _load_catalog(path: str) -> ProductCatalog:
    return ProductCatalog.from_file(path)


def get_catalog() -> ProductCatalog:
    """Catalog dependency; the file is parsed once per path"""
    return _load_catalog(get_settings().catalog_path)
