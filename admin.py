"""
Back-office API.

Every route under /admin/api needs the `admin` user: either HTTP Basic
credentials or the `admin_session` cookie handed out by /admin/api/login.
ADMIN_PASSWORD may hold the password itself or a passlib hash of it.
"""
import os
import secrets
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from passlib.context import CryptContext
from pymongo.database import Database

import catalog
import orders
from database import get_db, utcnow
from schemas import (
    AdminLogin,
    Banner,
    CategoryCreate,
    CategoryUpdate,
    ImageRequest,
    ProductCreate,
    ProductUpdate,
    StatusUpdate,
)

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt", "pbkdf2_sha256"], deprecated="auto")
basic_auth = HTTPBasic(auto_error=False)

ADMIN_USER = "admin"
SESSION_COOKIE = "admin_session"
SESSION_TTL = timedelta(hours=8)


def _expected_password() -> str:
    expected = os.getenv("ADMIN_PASSWORD")
    if not expected:
        logger.error("admin_password_missing")
        raise HTTPException(status_code=500, detail="ADMIN_PASSWORD not set")
    return expected


def check_credentials(user: str, password: str, expected: str) -> bool:
    if not secrets.compare_digest(user.encode(), ADMIN_USER.encode()):
        return False
    if pwd_context.identify(expected):
        return pwd_context.verify(password, expected)
    return secrets.compare_digest(password.encode(), expected.encode())


def _unauthorized(detail: str = "Authentication required") -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": 'Basic realm="Admin"'})


def require_admin(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
    db: Database = Depends(get_db),
) -> None:
    expected = _expected_password()

    token = request.cookies.get(SESSION_COOKIE)
    if token and db["admin_session"].find_one({"_id": token, "expires_at": {"$gt": utcnow()}}):
        return

    if credentials is None:
        raise _unauthorized()
    if not check_credentials(credentials.username, credentials.password, expected):
        raise _unauthorized("Unauthorized")


session_router = APIRouter(prefix="/admin/api", tags=["admin"])
router = APIRouter(prefix="/admin/api", tags=["admin"], dependencies=[Depends(require_admin)])


# Session

@session_router.post("/login")
def login(creds: AdminLogin, response: Response, db: Database = Depends(get_db)):
    expected = _expected_password()
    if not check_credentials(creds.user, creds.password, expected):
        logger.warning("admin_login_failed", user=creds.user)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = secrets.token_urlsafe(32)
    db["admin_session"].insert_one({"_id": token, "expires_at": utcnow() + SESSION_TTL})
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        path="/",
        samesite="lax",
        max_age=int(SESSION_TTL.total_seconds()),
        secure=os.getenv("APP_ENV") == "production",
    )
    logger.info("admin_login")
    return {"status": "ok"}


@session_router.post("/logout")
def logout(request: Request, response: Response, db: Database = Depends(get_db)):
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        db["admin_session"].delete_one({"_id": token})
    response.delete_cookie(SESSION_COOKIE, path="/")
    return {"status": "ok"}


# Dashboard

@router.get("/dashboard")
def dashboard(db: Database = Depends(get_db)):
    return {
        "products": db["product"].count_documents({}),
        "categories": db["category"].count_documents({}),
        "banners": db["banner"].count_documents({}),
        "orders": db["order"].count_documents({}),
    }


# Products

@router.get("/products")
def list_products(db: Database = Depends(get_db)):
    return catalog.list_products(db, include_inactive=True)


@router.get("/products/{product_id}")
def get_product(product_id: int, db: Database = Depends(get_db)):
    return catalog.get_product(db, product_id, include_inactive=True)


@router.post("/products", status_code=201)
def create_product(payload: ProductCreate, db: Database = Depends(get_db)):
    return catalog.create_product(db, payload)


@router.patch("/products/{product_id}")
def update_product(product_id: int, payload: ProductUpdate, db: Database = Depends(get_db)):
    return catalog.update_product(db, product_id, payload)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: int, db: Database = Depends(get_db)):
    catalog.delete_product(db, product_id)


@router.post("/products/{product_id}/images", status_code=201)
def add_image(product_id: int, payload: ImageRequest, db: Database = Depends(get_db)):
    return catalog.add_product_image(db, product_id, payload.url)


@router.delete("/products/{product_id}/images")
def remove_image(product_id: int, url: str, db: Database = Depends(get_db)):
    return catalog.remove_product_image(db, product_id, url)


# Categories

@router.get("/categories")
def list_categories(db: Database = Depends(get_db)):
    return catalog.list_categories(db, with_counts=True)


@router.post("/categories", status_code=201)
def create_category(payload: CategoryCreate, db: Database = Depends(get_db)):
    return catalog.create_category(db, payload)


@router.patch("/categories/{category_id}")
def update_category(category_id: int, payload: CategoryUpdate, db: Database = Depends(get_db)):
    return catalog.update_category(db, category_id, payload)


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: int, db: Database = Depends(get_db)):
    catalog.delete_category(db, category_id)


# Banners

@router.get("/banners")
def list_banners(db: Database = Depends(get_db)):
    return catalog.list_banners(db, include_inactive=True)


@router.post("/banners", status_code=201)
def create_banner(payload: Banner, db: Database = Depends(get_db)):
    return catalog.create_banner(db, payload)


@router.delete("/banners/{banner_id}", status_code=204)
def delete_banner(banner_id: int, db: Database = Depends(get_db)):
    catalog.delete_banner(db, banner_id)


# Orders

@router.get("/orders")
def list_orders(status: Optional[str] = None, search: Optional[str] = None, db: Database = Depends(get_db)):
    return {
        "orders": orders.list_orders(db, status=status, search=search),
        "counts": orders.status_counts(db),
    }


@router.get("/orders/{order_id}")
def get_order(order_id: int, db: Database = Depends(get_db)):
    return orders.get_order(db, order_id)


@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: int, payload: StatusUpdate, db: Database = Depends(get_db)):
    return orders.update_order_status(db, order_id, payload.status)


@router.delete("/orders/{order_id}", status_code=204)
def delete_order(order_id: int, db: Database = Depends(get_db)):
    orders.delete_order(db, order_id)
