import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING

from database import collection, get_documents

# Default listing order within any scope.
LISTING_SORT = [("order", ASCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)]


def type_clause(item_type: str) -> Dict[str, Any]:
    # Records written before `type` existed are physical products.
    if item_type == "product":
        return {"$or": [{"type": "product"}, {"type": {"$exists": False}}, {"type": None}]}
    return {"type": item_type}


def search_clause(search: str) -> Dict[str, Any]:
    pattern = re.escape(search.strip())
    return {"$or": [
        {"name": {"$regex": pattern, "$options": "i"}},
        {"description": {"$regex": pattern, "$options": "i"}},
    ]}


def combine(clauses: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def resolve_reference(collection_name: str, ref: Optional[str]) -> Optional[Dict[str, Any]]:
    """Look a category or sub-category up by id, falling back to its slug."""
    if not ref:
        return None
    coll = collection(collection_name)
    if ObjectId.is_valid(ref):
        doc = coll.find_one({"_id": ObjectId(ref)})
        if doc:
            return doc
    return coll.find_one({"slug": ref})


def product_filter(
    category_id: Optional[str] = None,
    sub_category_id: Optional[str] = None,
    item_type: Optional[str] = None,
    search: Optional[str] = None,
    include_inactive: bool = False,
) -> Dict[str, Any]:
    clauses: List[Dict[str, Any]] = []
    if not include_inactive:
        clauses.append({"active": {"$ne": False}})
    if category_id:
        clauses.append({"category": category_id})
    if sub_category_id:
        clauses.append({"sub_category": sub_category_id})
    if item_type:
        clauses.append(type_clause(item_type))
    if search and search.strip():
        clauses.append(search_clause(search))
    return combine(clauses)


def list_products(
    category: Optional[str] = None,
    sub_category: Optional[str] = None,
    item_type: Optional[str] = None,
    search: Optional[str] = None,
    include_inactive: bool = False,
) -> List[Dict[str, Any]]:
    # Unknown category/sub-category references list everything instead of failing.
    category_doc = resolve_reference("category", category)
    sub_doc = resolve_reference("subcategory", sub_category)
    query = product_filter(
        category_id=str(category_doc["_id"]) if category_doc else None,
        sub_category_id=str(sub_doc["_id"]) if sub_doc else None,
        item_type=item_type,
        search=search,
        include_inactive=include_inactive,
    )
    return get_documents("product", query, sort=LISTING_SORT)


def list_categories(item_type: Optional[str] = None) -> List[Dict[str, Any]]:
    query = type_clause(item_type) if item_type else {}
    return get_documents("category", query, sort=[("created_at", ASCENDING), ("_id", ASCENDING)])


def list_sub_categories(item_type: Optional[str] = None, category: Optional[str] = None) -> List[Dict[str, Any]]:
    clauses = []
    if item_type:
        clauses.append(type_clause(item_type))
    category_doc = resolve_reference("category", category)
    if category_doc:
        clauses.append({"category": str(category_doc["_id"])})
    return get_documents("subcategory", combine(clauses), sort=LISTING_SORT)


def ancestry(product: Dict[str, Any]):
    """Return the (category, sub_category) documents a product points at, either may be None."""
    category = None
    sub_category = None
    if product.get("sub_category") and ObjectId.is_valid(str(product["sub_category"])):
        sub_category = collection("subcategory").find_one({"_id": ObjectId(str(product["sub_category"]))})
    if product.get("category") and ObjectId.is_valid(str(product["category"])):
        category = collection("category").find_one({"_id": ObjectId(str(product["category"]))})
    return category, sub_category
