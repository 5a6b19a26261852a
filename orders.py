"""
Back-office order management: listing, search, status changes, deletion.
"""
import re
from typing import Any, Dict, List, Optional

import structlog
from pymongo.database import Database

from database import get_documents, serialize, utcnow
from errors import NotFoundError
from schemas import OrderStatus

logger = structlog.get_logger(__name__)


def build_order_filter(status: Optional[str] = None, search: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if status and status != "all":
        query["status"] = status
    search = (search or "").strip()
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"customer_name": pattern},
            {"whatsapp_number": pattern},
            {"_id": int(search) if search.isdigit() else -1},
        ]
    return query


def status_counts(db: Database) -> Dict[str, int]:
    counts = {status.value: 0 for status in OrderStatus}
    for row in db["order"].aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
        counts[row["_id"]] = row["count"]
    return counts


def list_orders(db: Database, status: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
    docs = get_documents(db, "order", build_order_filter(status, search), sort=[("_id", -1)])
    return [serialize(d) for d in docs]


def get_order(db: Database, order_id: int) -> Dict[str, Any]:
    doc = db["order"].find_one({"_id": order_id})
    if doc is None:
        raise NotFoundError(f"Order with ID {order_id} not found")
    return serialize(doc)


def update_order_status(db: Database, order_id: int, status: OrderStatus) -> Dict[str, Any]:
    result = db["order"].update_one(
        {"_id": order_id}, {"$set": {"status": status.value, "updated_at": utcnow()}}
    )
    if result.matched_count == 0:
        raise NotFoundError(f"Order with ID {order_id} not found")
    logger.info("order_status_updated", order_id=order_id, status=status.value)
    return get_order(db, order_id)


def delete_order(db: Database, order_id: int) -> None:
    # items are embedded, so they go with the order
    result = db["order"].delete_one({"_id": order_id})
    if result.deleted_count == 0:
        raise NotFoundError(f"Order with ID {order_id} not found")
    logger.info("order_deleted", order_id=order_id)
