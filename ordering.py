"""
Display ordering for products and sub-categories.

Every item carries an integer `order` that is meaningful only among its
siblings (its scope):

- a sub-category's scope is every sub-category under the same parent;
- a product's scope is every product of the same type under the same
  sub-category, or under the same category when it has no sub-category.

Values are not required to be contiguous. Lists are read sorted by
(order, created_at, _id). Writes are single-document and unserialized:
two concurrent moves can leave duplicates behind, and the next move that
hits a tie re-sequences the whole scope.
"""

from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from pymongo import DESCENDING

from catalog import LISTING_SORT, combine, type_clause
from database import collection, find_by_id, now
from errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def product_scope(product: Dict[str, Any]) -> Dict[str, Any]:
    clauses: List[Dict[str, Any]] = []
    if product.get("sub_category"):
        clauses.append({"sub_category": str(product["sub_category"])})
    else:
        clauses.append({"category": str(product.get("category"))})
        clauses.append({"sub_category": None})
    clauses.append(type_clause(product.get("type") or "product"))
    return combine(clauses)


def sub_category_scope(sub_category: Dict[str, Any]) -> Dict[str, Any]:
    return {"category": str(sub_category.get("category"))}


def next_order(collection_name: str, scope: Dict[str, Any]) -> int:
    """Position just past the last sibling; 0 for an empty scope."""
    top = collection(collection_name).find_one(scope, sort=[("order", DESCENDING)])
    if top is None:
        return 0
    return int(top.get("order") or 0) + 1


def _has_tie(collection_name: str, scope: Dict[str, Any], doc: Dict[str, Any]) -> bool:
    query = combine([scope, {"order": doc.get("order", 0)}, {"_id": {"$ne": doc["_id"]}}])
    return collection(collection_name).count_documents(query) > 0


def _swap_with_neighbor(collection_name: str, doc: Dict[str, Any], direction: str, scope: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Swap `order` with the nearest strictly-ordered neighbor.

    Returns None when there is no such neighbor or when either side shares
    its `order` with another sibling, so the caller can re-sequence.
    """
    coll = collection(collection_name)
    current = doc.get("order", 0)
    if direction == "up":
        neighbor = coll.find_one(combine([scope, {"order": {"$lt": current}}]), sort=[("order", DESCENDING)])
    else:
        neighbor = coll.find_one(combine([scope, {"order": {"$gt": current}}]), sort=[("order", 1)])
    if neighbor is None:
        return None
    if _has_tie(collection_name, scope, doc) or _has_tie(collection_name, scope, neighbor):
        return None

    stamp = now()
    coll.update_one({"_id": doc["_id"]}, {"$set": {"order": neighbor["order"], "updated_at": stamp}})
    coll.update_one({"_id": neighbor["_id"]}, {"$set": {"order": current, "updated_at": stamp}})
    return {"moved": True, "message": f"Moved {direction}", "order": neighbor["order"]}


def _resequence(collection_name: str, doc: Dict[str, Any], direction: str, scope: Dict[str, Any]) -> Dict[str, Any]:
    coll = collection(collection_name)
    siblings = list(coll.find(scope).sort(LISTING_SORT))
    index = next((i for i, s in enumerate(siblings) if s["_id"] == doc["_id"]), None)
    if index is None:
        raise NotFoundError("Item not found in its ordering scope")

    target = index - 1 if direction == "up" else index + 1
    if target < 0 or target >= len(siblings):
        edge = "top" if direction == "up" else "bottom"
        return {"moved": False, "message": f"Already at the {edge}", "order": doc.get("order", 0)}

    siblings[index], siblings[target] = siblings[target], siblings[index]
    stamp = now()
    for position, sibling in enumerate(siblings):
        if sibling.get("order") != position:
            coll.update_one({"_id": sibling["_id"]}, {"$set": {"order": position, "updated_at": stamp}})
    logger.debug("ordering.resequenced", collection=collection_name, size=len(siblings))
    return {"moved": True, "message": f"Moved {direction}", "order": target}


def move(collection_name: str, entity_id: str, direction: str, scope_for) -> Dict[str, Any]:
    """Move one item a single step up or down among its siblings.

    `scope_for` maps the loaded document to its scope filter. Moving past
    either end is not an error: the result has `moved` False and nothing
    is written.
    """
    if direction not in ("up", "down"):
        raise ValidationError("direction must be 'up' or 'down'")
    doc = find_by_id(collection_name, entity_id)
    if not doc:
        raise NotFoundError("Item not found")
    scope = scope_for(doc)
    result = _swap_with_neighbor(collection_name, doc, direction, scope)
    if result is None:
        result = _resequence(collection_name, doc, direction, scope)
    return result


def bulk_reassign_scope(
    ids: List[str],
    category_id: Optional[str] = None,
    sub_category_id: Optional[str] = None,
    description: Optional[str] = None,
) -> int:
    """Move products into a category/sub-category, appending them in `ids` order.

    The pairing is validated before anything is written. Unknown or
    malformed ids are skipped. Returns the number of products updated.
    """
    sub_category = None
    if sub_category_id:
        sub_category = find_by_id("subcategory", sub_category_id)
        if not sub_category:
            raise ValidationError("Invalid sub-category")
        parent_id = str(sub_category["category"])
        if category_id and str(category_id) != parent_id:
            raise ValidationError(
                f"Sub-category {sub_category_id} belongs to category {parent_id}, not {category_id}"
            )
        category_id = parent_id

    if not category_id and description is None:
        raise ValidationError("Nothing to update: send a category, sub-category or description")

    category = None
    if category_id:
        category = find_by_id("category", category_id)
        if not category:
            raise ValidationError("Invalid category")
        if category.get("type") == "eservice" and sub_category is None:
            raise ValidationError("sub-category required for e-services")

    coll = collection("product")
    next_positions: Dict[tuple, int] = {}
    updated = 0
    for pid in ids:
        if not ObjectId.is_valid(str(pid)):
            logger.debug("ordering.batch_skip", product=pid, reason="invalid id")
            continue
        product = coll.find_one({"_id": ObjectId(str(pid))})
        if not product:
            logger.debug("ordering.batch_skip", product=pid, reason="not found")
            continue

        update: Dict[str, Any] = {"updated_at": now()}
        if description is not None:
            update["description"] = description
        if category is not None:
            target = {
                "category": str(category["_id"]),
                "sub_category": str(sub_category["_id"]) if sub_category else None,
                "type": (sub_category or category).get("type") or product.get("type") or "product",
            }
            key = (target["category"], target["sub_category"], target["type"])
            if key not in next_positions:
                next_positions[key] = next_order("product", product_scope(target))
            target["order"] = next_positions[key]
            next_positions[key] += 1
            update.update(target)

        coll.update_one({"_id": product["_id"]}, {"$set": update})
        updated += 1
    return updated
