import os
from typing import Any, Dict, Optional

import structlog
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import admin
import catalog
import database
from checkout import SUCCESS_MESSAGE, checkout
from database import get_db
from errors import PersistenceError, StoreError
from logconfig import configure_logging

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin.session_router)
app.include_router(admin.router)


# Errors
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if isinstance(exc, PersistenceError):
        logger.error("persistence_failure", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("persistence_failure", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return JSONResponse(status_code=400, content={"error": f"{location}: {first.get('msg')}"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Health
@app.get("/")
def read_root():
    return {"message": "Storefront backend running"}


@app.get("/test")
def test_database():
    if database.db is None:
        return {"backend": "ok", "db": "not_configured"}
    try:
        collections = database.db.list_collection_names()
        return {"backend": "ok", "db": "ok", "collections": collections}
    except PyMongoError as e:
        return {"backend": "ok", "db": f"error: {str(e)[:80]}"}


# Products
@app.get("/api/products")
def list_products(
    category: Optional[str] = None,
    category_id: Optional[int] = Query(None, alias="categoryId"),
    featured: bool = False,
    recently_added: bool = Query(False, alias="recentlyAdded"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Database = Depends(get_db),
):
    return catalog.list_products(
        db,
        limit=limit,
        category=category,
        category_id=category_id,
        featured=featured,
        recently_added=recently_added,
    )


@app.get("/api/products/slug/{slug}")
def get_product_by_slug(slug: str, db: Database = Depends(get_db)):
    return catalog.get_product_by_slug(db, slug)


@app.get("/api/products/{product_id}")
def get_product(product_id: int, db: Database = Depends(get_db)):
    return catalog.get_product(db, product_id)


# Categories
@app.get("/api/categories")
def list_categories(db: Database = Depends(get_db)):
    return catalog.list_categories(db)


@app.get("/api/categories/{slug}")
def get_category(slug: str, db: Database = Depends(get_db)):
    return catalog.get_category(db, slug)


# Banners
@app.get("/api/banners")
def list_banners(db: Database = Depends(get_db)):
    return catalog.list_banners(db)


# Checkout -> validate, price server-side, take stock, store the order
@app.post("/api/checkout", status_code=201)
def place_order(payload: Any = Body(None), db: Database = Depends(get_db)) -> Dict[str, Any]:
    order = checkout(db, payload)
    return {"success": True, "message": SUCCESS_MESSAGE, "order": order}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
