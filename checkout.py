"""
Order placement.

A checkout submission is validated in a fixed order, priced from the
product documents (never from the client), and stored as one order
document with its items embedded. Stock is taken with one conditional
decrement per line before the order is written; every decrement is given
back if a later step fails, so a failed checkout leaves neither an order
nor a stock change behind.
"""
from typing import Any, Dict, List

import structlog
from pydantic import ValidationError as SchemaError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, utcnow
from errors import NotFoundError, PersistenceError, ValidationError
from schemas import (
    DELIVERY_FEES,
    DELIVERY_SELECTORS,
    CheckoutRequest,
    Order,
    OrderItem,
    effective_price,
)

logger = structlog.get_logger(__name__)

SUCCESS_MESSAGE = "Your order has been successfully sent."


def _text(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return ""
    return str(value).strip()


def parse_checkout(payload: Any) -> CheckoutRequest:
    """Map a raw JSON body onto a CheckoutRequest, failing on the first problem."""
    if not isinstance(payload, dict):
        raise ValidationError("invalid request body")

    full_name = _text(payload.get("fullName"))
    if not full_name:
        raise ValidationError("missing fullName")

    whatsapp = _text(payload.get("whatsapp"))
    if not whatsapp:
        raise ValidationError("missing whatsapp")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("missing items")

    selector = payload.get("deliveryOption")
    if not isinstance(selector, str) or selector not in DELIVERY_SELECTORS:
        raise ValidationError("invalid delivery option")

    note = payload.get("note")
    try:
        return CheckoutRequest.model_validate({
            "fullName": full_name,
            "whatsapp": whatsapp,
            "deliveryOption": DELIVERY_SELECTORS[selector],
            "items": items,
            "note": note if isinstance(note, str) and note.strip() else None,
        })
    except SchemaError as exc:
        raise ValidationError("invalid items") from exc


def _shortage_message(product: Dict[str, Any], requested: int) -> str:
    return (
        f'Insufficient stock for "{product["name"]}". '
        f'Available: {product.get("stock_quantity", 0)}, Requested: {requested}'
    )


def _check_product(product: Dict[str, Any], product_id: int, quantity: int) -> None:
    if product is None:
        raise NotFoundError(f"Product with ID {product_id} not found")
    if not product.get("is_active", False):
        raise ValidationError(f'Product "{product["name"]}" is not available')
    if product.get("stock_quantity", 0) < quantity:
        raise ValidationError(_shortage_message(product, quantity))


def price_items(db: Database, request: CheckoutRequest) -> List[OrderItem]:
    """Validate every line against the catalog and snapshot its price."""
    lines = []
    wanted: Dict[int, int] = {}
    for item in request.items:
        # repeated lines for one product draw on the same stock
        wanted[item.product_id] = wanted.get(item.product_id, 0) + item.quantity
        try:
            product = db["product"].find_one({"_id": item.product_id})
        except PyMongoError as exc:
            raise PersistenceError(f"product lookup failed: {exc}") from exc
        _check_product(product, item.product_id, wanted[item.product_id])

        unit_price = round(effective_price(product), 2)
        lines.append(OrderItem(
            product_id=item.product_id,
            product_name=product["name"],
            quantity=item.quantity,
            unit_price=unit_price,
            line_total=round(unit_price * item.quantity, 2),
        ))
    return lines


def release_stock(db: Database, lines: List[OrderItem]) -> None:
    for line in lines:
        try:
            db["product"].update_one(
                {"_id": line.product_id},
                {"$inc": {"stock_quantity": line.quantity}, "$set": {"updated_at": utcnow()}},
            )
        except PyMongoError as exc:
            logger.error("stock_release_failed", product_id=line.product_id, quantity=line.quantity)
            raise PersistenceError(f"failed to release stock for product {line.product_id}: {exc}") from exc


def reserve_stock(db: Database, lines: List[OrderItem]) -> None:
    """Take stock for every line, or for none of them.

    Each decrement only applies while the product is active and still has
    enough units, so two concurrent checkouts can never drive the counter
    below zero.
    """
    reserved = []
    for line in lines:
        try:
            taken = db["product"].find_one_and_update(
                {"_id": line.product_id, "is_active": True, "stock_quantity": {"$gte": line.quantity}},
                {"$inc": {"stock_quantity": -line.quantity}, "$set": {"updated_at": utcnow()}},
            )
        except PyMongoError as exc:
            release_stock(db, reserved)
            raise PersistenceError(f"stock reservation failed: {exc}") from exc

        if taken is None:
            release_stock(db, reserved)
            logger.info("stock_reservation_failed", product_id=line.product_id, quantity=line.quantity)
            current = db["product"].find_one({"_id": line.product_id})
            _check_product(current, line.product_id, line.quantity)
            # stock moved between the check and the decrement
            raise ValidationError(_shortage_message(current, line.quantity))
        reserved.append(line)


def place_order(db: Database, request: CheckoutRequest) -> Dict[str, Any]:
    lines = price_items(db, request)
    delivery_fee = DELIVERY_FEES[request.delivery_option]
    subtotal = round(sum(line.line_total for line in lines), 2)
    total = round(subtotal + delivery_fee, 2)

    order = Order(
        customer_name=request.full_name,
        whatsapp_number=request.whatsapp,
        delivery_option=request.delivery_option,
        delivery_fee=delivery_fee,
        subtotal=subtotal,
        total_price=total,
        note=request.note,
        items=lines,
    )

    reserve_stock(db, lines)
    try:
        order_id = create_document(db, "order", order)
    except PyMongoError as exc:
        logger.error("order_write_failed", customer=request.full_name, total=total)
        release_stock(db, lines)
        raise PersistenceError(f"order write failed: {exc}") from exc

    logger.info(
        "order_placed",
        order_id=order_id,
        total=total,
        delivery_option=request.delivery_option.value,
        items=len(lines),
    )
    return {
        "id": order_id,
        "totalAmount": total,
        "deliveryOption": request.delivery_option.value,
        "deliveryFee": delivery_fee,
    }


def checkout(db: Database, payload: Any) -> Dict[str, Any]:
    """Validate a raw submission and place the order."""
    request = parse_checkout(payload)
    return place_order(db, request)
