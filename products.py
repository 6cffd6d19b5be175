from typing import Any, Dict, Optional, Tuple

from catalog import ancestry
from database import collection, create_document, find_by_id, now, serialize
from defaults import apply_patch, final_price, resolve_product_defaults
from errors import NotFoundError, ValidationError
from ordering import next_order, product_scope
from schemas import Product, ProductCreate, ProductUpdate

SCOPE_FIELDS = ("category", "sub_category", "type")
# Fields that never go through default resolution.
PLAIN_FIELDS = ("name", "stock", "active")


def product_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = serialize(doc)
    out["final_price"] = final_price(doc)
    return out


def load_ancestry(category_id: Optional[str], sub_category_id: Optional[str]) -> Tuple[Optional[dict], Optional[dict]]:
    """Fetch the category and sub-category a product input points at.

    A sub-category's parent replaces any category id the caller sent.
    """
    sub_category = None
    if sub_category_id:
        sub_category = find_by_id("subcategory", sub_category_id)
        if not sub_category:
            raise ValidationError("Invalid sub-category")
        category_id = sub_category["category"]
    if not category_id:
        raise ValidationError("category or sub-category is required")
    category = find_by_id("category", category_id)
    if not category:
        raise ValidationError("Invalid category")
    return category, sub_category


def get_product(product_id: str) -> Dict[str, Any]:
    product = find_by_id("product", product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def create_product(payload: ProductCreate) -> Dict[str, Any]:
    data = payload.model_dump()
    category, sub_category = load_ancestry(data.get("category"), data.get("sub_category"))
    resolved = resolve_product_defaults(data, category, sub_category)

    doc = Product(
        name=data["name"],
        stock=data["stock"] if data.get("stock") is not None else -1,
        active=data["active"] if data.get("active") is not None else True,
        **resolved,
    ).model_dump()
    doc["order"] = next_order("product", product_scope(doc))
    product_id = create_document("product", doc)
    return get_product(product_id)


def update_product(product_id: str, payload: ProductUpdate) -> Dict[str, Any]:
    existing = get_product(product_id)
    patch = payload.model_dump(exclude_unset=True)

    # A new category without a sub-category leaves the old sub-category behind.
    if patch.get("category") and "sub_category" not in patch and patch["category"] != existing.get("category"):
        patch["sub_category"] = None

    if set(patch) <= set(PLAIN_FIELDS):
        # Orphans whose category was deleted stay editable here.
        update = {k: v for k, v in patch.items() if v is not None}
        update["updated_at"] = now()
        collection("product").update_one({"_id": existing["_id"]}, {"$set": update})
        return get_product(product_id)

    merged = apply_patch(existing, patch)
    category, sub_category = load_ancestry(merged.get("category"), merged.get("sub_category"))
    resolved = resolve_product_defaults(merged, category, sub_category)

    update = {k: v for k, v in patch.items() if k in PLAIN_FIELDS and v is not None}
    update.update(resolved)
    previous = {f: existing.get(f) for f in SCOPE_FIELDS}
    previous["type"] = previous["type"] or "product"
    if any(previous[f] != resolved[f] for f in SCOPE_FIELDS):
        update["order"] = next_order("product", product_scope(resolved))
    update["updated_at"] = now()

    collection("product").update_one({"_id": existing["_id"]}, {"$set": update})
    return get_product(product_id)


def delete_product(product_id: str) -> None:
    product = get_product(product_id)
    collection("product").delete_one({"_id": product["_id"]})


def product_detail(product: Dict[str, Any]) -> Dict[str, Any]:
    out = product_out(product)
    category, sub_category = ancestry(product)
    out["category_detail"] = serialize(category) if category else None
    out["sub_category_detail"] = serialize(sub_category) if sub_category else None
    return out
