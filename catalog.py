"""
Catalog queries and back-office maintenance for products, categories and banners.
"""
import re
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError as SchemaError
from pymongo.database import Database

from database import create_document, get_documents, serialize, utcnow
from errors import ConflictError, NotFoundError, ValidationError
from schemas import (
    Banner,
    Category,
    CategoryCreate,
    CategoryUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
)

logger = structlog.get_logger(__name__)

NEWEST_FIRST = [("_id", -1)]


def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


def _schema_error(exc: SchemaError) -> ValidationError:
    first = exc.errors()[0]
    return ValidationError(first["msg"].removeprefix("Value error, "))


# Storefront

def build_product_filter(
    db: Database,
    category: Optional[str] = None,
    category_id: Optional[int] = None,
    featured: Optional[bool] = None,
    recently_added: Optional[bool] = None,
    include_inactive: bool = False,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if not include_inactive:
        query["is_active"] = True
    if category:
        found = db["category"].find_one({"slug": category})
        if found is None:
            # unknown slug lists nothing
            return {"_id": {"$in": []}}
        query["category_id"] = found["_id"]
    if category_id is not None:
        if "category_id" in query and query["category_id"] != category_id:
            return {"_id": {"$in": []}}
        query["category_id"] = category_id
    if featured:
        query["is_featured"] = True
    if recently_added:
        query["is_recently_added"] = True
    return query


def _with_category(db: Database, product: Dict[str, Any]) -> Dict[str, Any]:
    out = serialize(product)
    category = db["category"].find_one({"_id": product.get("category_id")})
    out["category"] = (
        {"id": category["_id"], "name": category["name"], "slug": category["slug"]} if category else None
    )
    return out


def list_products(db: Database, limit: Optional[int] = None, **filters) -> List[Dict[str, Any]]:
    query = build_product_filter(db, **filters)
    docs = get_documents(db, "product", query, sort=NEWEST_FIRST, limit=limit)
    return [_with_category(db, d) for d in docs]


def get_product(db: Database, product_id: int, include_inactive: bool = False) -> Dict[str, Any]:
    doc = db["product"].find_one({"_id": product_id})
    if doc is None or (not include_inactive and not doc.get("is_active")):
        raise NotFoundError(f"Product with ID {product_id} not found")
    return _with_category(db, doc)


def get_product_by_slug(db: Database, slug: str) -> Dict[str, Any]:
    doc = db["product"].find_one({"slug": slug, "is_active": True})
    if doc is None:
        raise NotFoundError(f"Product {slug} not found")
    return _with_category(db, doc)


def list_categories(db: Database, with_counts: bool = False) -> List[Dict[str, Any]]:
    categories = [serialize(d) for d in get_documents(db, "category", sort=[("name", 1)])]
    if with_counts:
        for category in categories:
            category["product_count"] = db["product"].count_documents({"category_id": category["id"]})
    return categories


def get_category(db: Database, slug: str) -> Dict[str, Any]:
    doc = db["category"].find_one({"slug": slug})
    if doc is None:
        raise NotFoundError(f"Category {slug} not found")
    category = serialize(doc)
    category["products"] = list_products(db, category_id=doc["_id"])
    return category


def list_banners(db: Database, include_inactive: bool = False) -> List[Dict[str, Any]]:
    query = {} if include_inactive else {"is_active": True}
    banners = [serialize(d) for d in get_documents(db, "banner", query, sort=[("sort_order", 1), ("_id", 1)])]
    if include_inactive:
        for banner in banners:
            product = db["product"].find_one({"_id": banner.get("product_id")}) if banner.get("product_id") else None
            banner["product_name"] = product["name"] if product else None
    return banners


# Back office: categories

def _ensure_unique_slug(db: Database, collection_name: str, slug: str, own_id: Optional[int] = None) -> None:
    clash = db[collection_name].find_one({"slug": slug})
    if clash is not None and clash["_id"] != own_id:
        raise ConflictError(f"{collection_name} slug {slug!r} already exists")


def create_category(db: Database, payload: CategoryCreate) -> Dict[str, Any]:
    slug = payload.slug or slugify(payload.name)
    try:
        category = Category(name=payload.name.strip(), slug=slug, description=payload.description)
    except SchemaError as exc:
        raise _schema_error(exc) from exc
    _ensure_unique_slug(db, "category", category.slug)
    category_id = create_document(db, "category", category)
    logger.info("category_created", category_id=category_id, slug=category.slug)
    return serialize(db["category"].find_one({"_id": category_id}))


def update_category(db: Database, category_id: int, payload: CategoryUpdate) -> Dict[str, Any]:
    current = db["category"].find_one({"_id": category_id})
    if current is None:
        raise NotFoundError(f"Category with ID {category_id} not found")
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and not changes["name"]:
        raise ValidationError("name must not be empty")
    if changes.get("name"):
        changes["name"] = changes["name"].strip()
        changes.setdefault("slug", slugify(changes["name"]))
    if changes.get("slug"):
        _ensure_unique_slug(db, "category", changes["slug"], own_id=category_id)
    elif "slug" in changes:
        raise ValidationError("slug must not be empty")
    changes["updated_at"] = utcnow()
    db["category"].update_one({"_id": category_id}, {"$set": changes})
    logger.info("category_updated", category_id=category_id)
    return serialize(db["category"].find_one({"_id": category_id}))


def delete_category(db: Database, category_id: int) -> None:
    if db["category"].find_one({"_id": category_id}) is None:
        raise NotFoundError(f"Category with ID {category_id} not found")
    product_count = db["product"].count_documents({"category_id": category_id})
    if product_count > 0:
        raise ConflictError(f"Cannot delete category with {product_count} products")
    db["category"].delete_one({"_id": category_id})
    logger.info("category_deleted", category_id=category_id)


# Back office: products

def _require_category(db: Database, category_id: int) -> None:
    if db["category"].find_one({"_id": category_id}) is None:
        raise NotFoundError(f"Category with ID {category_id} not found")


def create_product(db: Database, payload: ProductCreate) -> Dict[str, Any]:
    data = payload.model_dump()
    data["name"] = data["name"].strip()
    data["slug"] = data["slug"] or slugify(data["name"])
    try:
        product = Product(**data)
    except SchemaError as exc:
        raise _schema_error(exc) from exc
    _require_category(db, product.category_id)
    _ensure_unique_slug(db, "product", product.slug)
    product_id = create_document(db, "product", product)
    logger.info("product_created", product_id=product_id, slug=product.slug)
    return get_product(db, product_id, include_inactive=True)


def update_product(db: Database, product_id: int, payload: ProductUpdate) -> Dict[str, Any]:
    current = db["product"].find_one({"_id": product_id})
    if current is None:
        raise NotFoundError(f"Product with ID {product_id} not found")
    changes = payload.model_dump(exclude_unset=True)

    merged = {k: v for k, v in current.items() if k not in ("_id", "created_at", "updated_at")}
    merged.update(changes)
    try:
        Product(**merged)
    except SchemaError as exc:
        raise _schema_error(exc) from exc
    if "category_id" in changes:
        _require_category(db, changes["category_id"])
    if "slug" in changes:
        _ensure_unique_slug(db, "product", changes["slug"], own_id=product_id)

    changes["updated_at"] = utcnow()
    db["product"].update_one({"_id": product_id}, {"$set": changes})
    logger.info("product_updated", product_id=product_id, fields=sorted(changes))
    return get_product(db, product_id, include_inactive=True)


def delete_product(db: Database, product_id: int) -> None:
    result = db["product"].delete_one({"_id": product_id})
    if result.deleted_count == 0:
        raise NotFoundError(f"Product with ID {product_id} not found")
    # order items keep their own snapshot, banners just lose the link
    db["banner"].update_many({"product_id": product_id}, {"$set": {"product_id": None}})
    logger.info("product_deleted", product_id=product_id)


def add_product_image(db: Database, product_id: int, url: str) -> Dict[str, Any]:
    result = db["product"].update_one(
        {"_id": product_id}, {"$push": {"images": url}, "$set": {"updated_at": utcnow()}}
    )
    if result.matched_count == 0:
        raise NotFoundError(f"Product with ID {product_id} not found")
    return get_product(db, product_id, include_inactive=True)


def remove_product_image(db: Database, product_id: int, url: str) -> Dict[str, Any]:
    result = db["product"].update_one(
        {"_id": product_id}, {"$pull": {"images": url}, "$set": {"updated_at": utcnow()}}
    )
    if result.matched_count == 0:
        raise NotFoundError(f"Product with ID {product_id} not found")
    return get_product(db, product_id, include_inactive=True)


# Back office: banners

def create_banner(db: Database, payload: Banner) -> Dict[str, Any]:
    if payload.product_id is not None and db["product"].find_one({"_id": payload.product_id}) is None:
        raise NotFoundError(f"Product with ID {payload.product_id} not found")
    banner_id = create_document(db, "banner", payload)
    logger.info("banner_created", banner_id=banner_id)
    return serialize(db["banner"].find_one({"_id": banner_id}))


def delete_banner(db: Database, banner_id: int) -> None:
    result = db["banner"].delete_one({"_id": banner_id})
    if result.deleted_count == 0:
        raise NotFoundError(f"Banner with ID {banner_id} not found")
    logger.info("banner_deleted", banner_id=banner_id)
