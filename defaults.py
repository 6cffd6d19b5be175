"""
Default resolution for catalog items.

A product's effective price, discount, description, image, type and
currency come from the first value present along the chain

    product input -> sub-category -> category -> built-in default

These functions take plain documents (dicts as stored in MongoDB) and do
no I/O, so routes load the ancestry once and hand it in.
"""

import re
from typing import Any, Dict, Optional

from errors import ValidationError

RESOLVED_FIELDS = ("price", "discount", "description", "image", "type", "currency")


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def first_present(*values: Any, default: Any = None) -> Any:
    for value in values:
        if is_present(value):
            return value
    return default


def resolve_product_defaults(
    data: Dict[str, Any],
    category: Optional[Dict[str, Any]],
    sub_category: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Compute the persisted catalog fields of a product.

    `data` is the caller's input with absent fields missing or None.
    `category` must be the sub-category's parent when a sub-category is
    given; the sub-category's parent always wins over a category id the
    caller sent directly.

    Raises ValidationError when the category is missing, an e-service has
    no sub-category, an e-service has no image anywhere in the chain, or
    no price can be resolved.
    """
    if category is None:
        raise ValidationError("Invalid category")
    sub = sub_category or {}

    if sub_category is not None:
        category_id = str(sub_category["category"])
        sub_category_id = str(sub_category["_id"])
    else:
        category_id = str(category["_id"])
        sub_category_id = None

    item_type = first_present(data.get("type"), sub.get("type"), category.get("type"), default="product")
    if item_type == "eservice" and sub_category is None:
        raise ValidationError("sub-category required for e-services")

    # The product keeps its own image; the chain only fills a missing one.
    image = first_present(data.get("image"), sub.get("image"), category.get("image"))
    if item_type == "eservice" and image is None:
        raise ValidationError("sub-category image required")

    price = first_present(data.get("price"), sub.get("default_price"), category.get("default_price"))
    if price is None:
        raise ValidationError("price required")

    discount = first_present(data.get("discount"), sub.get("default_discount"), category.get("default_discount"), default=0)

    description = first_present(data.get("description"), sub.get("description"), category.get("description"), default="")

    currency = first_present(data.get("currency"), sub.get("currency"), category.get("currency"))

    return {
        "category": category_id,
        "sub_category": sub_category_id,
        "type": item_type,
        "price": float(price),
        "discount": float(discount),
        "description": description.strip() if isinstance(description, str) else description,
        "image": image,
        "currency": currency,
    }


def apply_patch(existing: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay an update patch on a stored product.

    Fields missing from `patch` keep their stored value. Fields sent as
    null or blank are dropped so resolution refills them from the chain;
    falsy-but-real values such as a discount of 0 are kept.
    """
    merged = {k: v for k, v in existing.items() if k != "_id"}
    for key, value in patch.items():
        if is_present(value):
            merged[key] = value
        else:
            merged.pop(key, None)
    return merged


def final_price(product: Dict[str, Any]) -> Optional[float]:
    price = product.get("price")
    if price is None:
        return None
    discount = product.get("discount") or 0
    return round(price * (1 - discount / 100), 2)
