"""
Checkout: turning a cart payload into a stored order.

Each line item copies the product, category and sub-category names and
descriptions as they are at checkout. The order never reads the catalog
again, so later catalog edits do not change it.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from catalog import ancestry
from database import collection, find_by_id, get_documents, now
from defaults import final_price
from errors import NotFoundError, UnknownError, ValidationError
from schemas import OrderCreate, OrderUpdate

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 3

Ancestry = Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]


def snapshot_item(
    item: Dict[str, Any],
    product: Optional[Dict[str, Any]],
    category: Optional[Dict[str, Any]] = None,
    sub_category: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Freeze catalog data into a line item.

    The client's product name and price win when given; descriptions and
    category/sub-category names come from the live catalog first.
    """
    snap = dict(item)
    if product is None:
        return snap
    category = category or {}
    sub_category = sub_category or {}
    snap["product_name"] = item.get("product_name") or product.get("name")
    snap["product_description"] = product.get("description") or item.get("product_description") or ""
    snap["category_name"] = category.get("name") or item.get("category_name") or ""
    snap["sub_category_name"] = sub_category.get("name") or item.get("sub_category_name") or ""
    snap["sub_category_description"] = sub_category.get("description") or item.get("sub_category_description") or ""
    if item.get("price") is None and product.get("price") is not None:
        snap["price"] = product["price"]
    return snap


def _lookup(product_id: str) -> Tuple[Optional[Dict[str, Any]], Ancestry]:
    if not ObjectId.is_valid(product_id):
        return None, (None, None)
    product = collection("product").find_one({"_id": ObjectId(product_id)})
    if not product:
        return None, (None, None)
    return product, ancestry(product)


def build_items(raw_items: List[Dict[str, Any]], lookup: Callable = _lookup) -> List[Dict[str, Any]]:
    items = []
    for raw in raw_items:
        try:
            product, (category, sub_category) = lookup(raw["product"])
        except PyMongoError as exc:
            logger.warning("order.product_lookup_failed", product=raw.get("product"), error=str(exc))
            product, category, sub_category = None, None, None
        item = snapshot_item(raw, product, category, sub_category)
        if item.get("price") is None:
            raise ValidationError(f"price required for item {raw.get('product')}")
        items.append(item)
    return items


def generate_order_number() -> str:
    count = collection("order").count_documents({})
    return f"ORD-{int(time.time() * 1000)}-{count + 1}"


def _insert_with_number(order_doc: Dict[str, Any]) -> Dict[str, Any]:
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        order_doc["order_number"] = generate_order_number()
        try:
            result = collection("order").insert_one(order_doc)
        except DuplicateKeyError:
            logger.warning("order.number_collision", order_number=order_doc["order_number"], attempt=attempt)
            order_doc.pop("_id", None)
            continue
        order_doc["_id"] = result.inserted_id
        return order_doc
    raise UnknownError("Could not allocate an order number")


def create_order(payload: OrderCreate) -> Dict[str, Any]:
    items = build_items([i.model_dump() for i in payload.items])

    computed = round(sum((final_price(i) or 0) * i["quantity"] for i in items), 2)
    if abs(computed - payload.total_amount) > 0.01:
        # The submitted total is stored as-is.
        logger.warning("order.total_mismatch", submitted=payload.total_amount, computed=computed)

    customer = payload.customer.model_dump()
    customer["email"] = payload.email or customer.get("email")
    stamp = now()
    order_doc = {
        "customer": customer,
        "items": items,
        "total_amount": payload.total_amount,
        "status": "pending",
        "notes": payload.notes,
        "created_at": stamp,
        "updated_at": stamp,
    }
    order = _insert_with_number(order_doc)
    logger.info("order.created", order_number=order["order_number"], items=len(items))
    return order


def list_orders(status: Optional[str] = None) -> List[Dict[str, Any]]:
    query = {"status": status} if status else {}
    return get_documents("order", query, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])


def get_order(order_id: str) -> Dict[str, Any]:
    order = find_by_id("order", order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def update_order(order_id: str, payload: OrderUpdate) -> Dict[str, Any]:
    order = get_order(order_id)
    update = payload.model_dump(exclude_unset=True)
    if "status" in update and update["status"] is None:
        raise ValidationError("Invalid status")
    update["updated_at"] = now()
    collection("order").update_one({"_id": order["_id"]}, {"$set": update})
    return collection("order").find_one({"_id": order["_id"]})


def delete_order(order_id: str) -> None:
    result = collection("order").delete_one({"_id": get_order(order_id)["_id"]})
    if result.deleted_count == 0:
        raise NotFoundError("Order not found")
