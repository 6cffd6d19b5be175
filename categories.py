from typing import Any, Dict

import structlog
from pymongo.errors import DuplicateKeyError

from database import collection, create_document, find_by_id, now
from defaults import slugify
from errors import NotFoundError, ValidationError
from ordering import next_order, sub_category_scope
from schemas import Category, CategoryCreate, CategoryUpdate, SubCategory, SubCategoryCreate, SubCategoryUpdate

logger = structlog.get_logger(__name__)


# --------------------- Categories ---------------------

def get_category(category_id: str) -> Dict[str, Any]:
    category = find_by_id("category", category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def create_category(payload: CategoryCreate) -> Dict[str, Any]:
    data = payload.model_dump()
    doc = Category(
        name=data["name"].strip(),
        slug=slugify(data["name"]),
        description=data.get("description"),
        image=data.get("image"),
        default_price=data.get("default_price"),
        default_discount=data.get("default_discount") or 0,
        type=data.get("type") or "product",
        currency=data.get("currency"),
    )
    if collection("category").find_one({"$or": [{"name": doc.name}, {"slug": doc.slug}]}):
        raise ValidationError("Category name already exists")
    try:
        category_id = create_document("category", doc)
    except DuplicateKeyError:
        raise ValidationError("Category name already exists")
    return get_category(category_id)


def update_category(category_id: str, payload: CategoryUpdate) -> Dict[str, Any]:
    category = get_category(category_id)
    patch = payload.model_dump(exclude_unset=True)
    apply_to_products = patch.pop("apply_defaults_to_products", False)

    update = {k: v for k, v in patch.items() if k != "name"}
    if "default_discount" in update and update["default_discount"] is None:
        update["default_discount"] = 0
    if "type" in update and update["type"] is None:
        update.pop("type")
    if patch.get("name"):
        update["name"] = patch["name"].strip()
        update["slug"] = slugify(patch["name"])
        clash = collection("category").find_one({
            "$or": [{"name": update["name"]}, {"slug": update["slug"]}],
            "_id": {"$ne": category["_id"]},
        })
        if clash:
            raise ValidationError("Category name already exists")
    update["updated_at"] = now()

    propagate = {}
    if apply_to_products:
        if "default_price" in patch:
            if patch["default_price"] is None:
                raise ValidationError("price required")
            propagate["price"] = patch["default_price"]
        if "default_discount" in patch:
            propagate["discount"] = patch["default_discount"] or 0
        if "description" in patch:
            propagate["description"] = patch["description"] or ""

    try:
        collection("category").update_one({"_id": category["_id"]}, {"$set": update})
    except DuplicateKeyError:
        raise ValidationError("Category name already exists")

    if propagate:
        propagate["updated_at"] = now()
        result = collection("product").update_many({"category": str(category["_id"])}, {"$set": propagate})
        logger.info("category.defaults_applied", category=str(category["_id"]), products=result.modified_count)

    return get_category(category_id)


def delete_category(category_id: str) -> None:
    category = get_category(category_id)
    cid = str(category["_id"])
    collection("category").delete_one({"_id": category["_id"]})
    # No cascade: children keep pointing at the removed id.
    orphans = collection("product").count_documents({"category": cid})
    orphan_subs = collection("subcategory").count_documents({"category": cid})
    if orphans or orphan_subs:
        logger.warning("category.deleted_with_children", category=cid, products=orphans, sub_categories=orphan_subs)


# --------------------- Sub-categories ---------------------

def get_sub_category(sub_category_id: str) -> Dict[str, Any]:
    sub_category = find_by_id("subcategory", sub_category_id)
    if not sub_category:
        raise NotFoundError("Sub-category not found")
    return sub_category


def _parent(category_id: str) -> Dict[str, Any]:
    parent = find_by_id("category", category_id)
    if not parent:
        raise ValidationError("Invalid parent category")
    return parent


def _check_type(requested, parent: Dict[str, Any]) -> str:
    parent_type = parent.get("type") or "product"
    if requested and requested != parent_type:
        raise ValidationError(f"Sub-category type '{requested}' does not match category type '{parent_type}'")
    return parent_type


def create_sub_category(payload: SubCategoryCreate) -> Dict[str, Any]:
    data = payload.model_dump()
    parent = _parent(data["category"])
    doc = SubCategory(
        name=data["name"].strip(),
        slug=slugify(data["name"]),
        description=data.get("description"),
        image=data.get("image"),
        default_price=data.get("default_price"),
        default_discount=data.get("default_discount"),
        category=str(parent["_id"]),
        type=_check_type(data.get("type"), parent),
        currency=data.get("currency"),
    ).model_dump()
    doc["order"] = next_order("subcategory", sub_category_scope(doc))
    try:
        sub_category_id = create_document("subcategory", doc)
    except DuplicateKeyError:
        raise ValidationError("Sub-category name already exists in this category")
    return get_sub_category(sub_category_id)


def update_sub_category(sub_category_id: str, payload: SubCategoryUpdate) -> Dict[str, Any]:
    sub_category = get_sub_category(sub_category_id)
    patch = payload.model_dump(exclude_unset=True)

    update = {k: v for k, v in patch.items() if k in ("description", "image", "default_price", "default_discount", "currency")}
    if patch.get("name"):
        update["name"] = patch["name"].strip()
        update["slug"] = slugify(patch["name"])

    if "type" in patch or "category" in patch:
        parent = _parent(patch.get("category") or sub_category["category"])
        update["type"] = _check_type(patch.get("type"), parent)
        if str(parent["_id"]) != str(sub_category["category"]):
            update["category"] = str(parent["_id"])
            update["order"] = next_order("subcategory", sub_category_scope(update))
    update["updated_at"] = now()

    try:
        collection("subcategory").update_one({"_id": sub_category["_id"]}, {"$set": update})
    except DuplicateKeyError:
        raise ValidationError("Sub-category name already exists in this category")
    return get_sub_category(sub_category_id)


def delete_sub_category(sub_category_id: str) -> None:
    sub_category = get_sub_category(sub_category_id)
    collection("subcategory").delete_one({"_id": sub_category["_id"]})
