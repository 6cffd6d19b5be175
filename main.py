import os
import traceback
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

import auth
import catalog
import categories
import config
import database
import orders
import ordering
import products
import site_settings
from auth import AuthAdmin, get_current_admin
from database import serialize
from errors import AppError, UnknownError
from notifications import ChatNotifier, Mailer, dispatch_order_notifications, get_chat_notifier, get_mailer
from schemas import (
    CategoryCreate, CategoryUpdate,
    LoginRequest, RegisterRequest,
    MoveRequest,
    OrderCreate, OrderUpdate,
    ProductBatchUpdate, ProductCreate, ProductUpdate,
    SettingsUpdate,
    SubCategoryCreate, SubCategoryUpdate,
)

config.configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is None:
        logger.warning("database.not_configured")
    else:
        database.ensure_indexes()
    yield


app = FastAPI(title="Storefront API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------------- Errors ---------------------

@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})


@app.exception_handler(Exception)
def unknown_error_handler(request: Request, exc: Exception):
    logger.exception("request.failed", path=request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error", "error": str(exc)})


# --------------------- Health ---------------------

@app.get("/")
def root():
    return {"status": "ok", "message": "Storefront API is running", "health": "/api/health"}


@app.get("/api/health")
def health():
    return {"status": "Server is running"}


@app.get("/schema")
def get_schema():
    from schemas import Category, Order, Product, Settings, SubCategory
    return {
        "category": Category.model_json_schema(),
        "subcategory": SubCategory.model_json_schema(),
        "product": Product.model_json_schema(),
        "order": Order.model_json_schema(),
        "settings": Settings.model_json_schema(),
    }


# Auth
@app.post("/api/auth/register", status_code=201)
def register(req: RegisterRequest):
    token = auth.register(req)
    return {"message": "Admin registered successfully", "token": token}


@app.post("/api/auth/login")
def login(req: LoginRequest):
    token, admin = auth.login(req)
    return {"message": "Login successful", "token": token, "admin": admin.model_dump()}


@app.get("/api/auth/me")
def me(admin: AuthAdmin = Depends(get_current_admin)):
    return auth.current_admin_profile(admin).model_dump()


# Categories
@app.get("/api/categories")
def list_categories(type: Optional[str] = None):
    return [serialize(c) for c in catalog.list_categories(type)]


@app.post("/api/categories", status_code=201)
def create_category(body: CategoryCreate, admin: AuthAdmin = Depends(get_current_admin)):
    category = categories.create_category(body)
    return {"message": "Category created successfully", "category": serialize(category)}


@app.put("/api/categories/{category_id}")
def update_category(category_id: str, body: CategoryUpdate, admin: AuthAdmin = Depends(get_current_admin)):
    category = categories.update_category(category_id, body)
    return {"message": "Category updated successfully", "category": serialize(category)}


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: str, admin: AuthAdmin = Depends(get_current_admin)):
    categories.delete_category(category_id)
    return {"message": "Category deleted successfully"}


# Sub-categories
@app.get("/api/subcategories")
def list_sub_categories(type: Optional[str] = None, category: Optional[str] = None):
    return [serialize(s) for s in catalog.list_sub_categories(type, category)]


@app.post("/api/subcategories", status_code=201)
def create_sub_category(body: SubCategoryCreate, admin: AuthAdmin = Depends(get_current_admin)):
    sub_category = categories.create_sub_category(body)
    return {"message": "Sub-category created successfully", "sub_category": serialize(sub_category)}


@app.put("/api/subcategories/{sub_category_id}")
def update_sub_category(sub_category_id: str, body: SubCategoryUpdate, admin: AuthAdmin = Depends(get_current_admin)):
    sub_category = categories.update_sub_category(sub_category_id, body)
    return {"message": "Sub-category updated successfully", "sub_category": serialize(sub_category)}


@app.delete("/api/subcategories/{sub_category_id}")
def delete_sub_category(sub_category_id: str, admin: AuthAdmin = Depends(get_current_admin)):
    categories.delete_sub_category(sub_category_id)
    return {"message": "Sub-category deleted successfully"}


@app.post("/api/subcategories/{sub_category_id}/move")
def move_sub_category(sub_category_id: str, body: MoveRequest, admin: AuthAdmin = Depends(get_current_admin)):
    return ordering.move("subcategory", sub_category_id, body.direction, ordering.sub_category_scope)


# Products
@app.get("/api/products")
def list_products(
    category: Optional[str] = None,
    sub_category: Optional[str] = None,
    search: Optional[str] = None,
    type: Optional[str] = None,
    include_inactive: bool = False,
):
    docs = catalog.list_products(category, sub_category, type, search, include_inactive)
    return [products.product_out(d) for d in docs]


@app.put("/api/products/batch")
def batch_update_products(body: ProductBatchUpdate, admin: AuthAdmin = Depends(get_current_admin)):
    try:
        updated = ordering.bulk_reassign_scope(body.ids, body.category, body.sub_category, body.description)
    except PyMongoError as exc:
        raise UnknownError("Batch update failed", detail=str(exc), trace=traceback.format_exc())
    return {"message": f"Updated {updated} product(s)", "updated": updated}


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    return products.product_detail(products.get_product(product_id))


@app.post("/api/products", status_code=201)
def create_product(body: ProductCreate, admin: AuthAdmin = Depends(get_current_admin)):
    product = products.create_product(body)
    return {"message": "Product created successfully", "product": products.product_out(product)}


@app.put("/api/products/{product_id}")
def update_product(product_id: str, body: ProductUpdate, admin: AuthAdmin = Depends(get_current_admin)):
    product = products.update_product(product_id, body)
    return {"message": "Product updated successfully", "product": products.product_out(product)}


@app.post("/api/products/{product_id}/move")
def move_product(product_id: str, body: MoveRequest, admin: AuthAdmin = Depends(get_current_admin)):
    return ordering.move("product", product_id, body.direction, ordering.product_scope)


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, admin: AuthAdmin = Depends(get_current_admin)):
    products.delete_product(product_id)
    return {"message": "Product deleted successfully"}


# Orders
@app.post("/api/orders", status_code=201)
def create_order(
    body: OrderCreate,
    background_tasks: BackgroundTasks,
    mail: Mailer = Depends(get_mailer),
    chat: ChatNotifier = Depends(get_chat_notifier),
):
    order = serialize(orders.create_order(body))
    background_tasks.add_task(dispatch_order_notifications, order, mail, chat)
    return {"message": "Order created successfully", "order_number": order["order_number"], "order": order}


@app.get("/api/orders")
def list_orders(status: Optional[str] = None, admin: AuthAdmin = Depends(get_current_admin)):
    return [serialize(o) for o in orders.list_orders(status)]


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, admin: AuthAdmin = Depends(get_current_admin)):
    return serialize(orders.get_order(order_id))


@app.put("/api/orders/{order_id}")
def update_order(order_id: str, body: OrderUpdate, admin: AuthAdmin = Depends(get_current_admin)):
    order = orders.update_order(order_id, body)
    return {"message": "Order updated successfully", "order": serialize(order)}


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str, admin: AuthAdmin = Depends(get_current_admin)):
    orders.delete_order(order_id)
    return {"message": "Order deleted successfully"}


# Settings
@app.get("/api/settings")
def get_settings():
    return serialize(site_settings.get_settings())


@app.put("/api/settings")
def update_settings(body: SettingsUpdate, admin: AuthAdmin = Depends(get_current_admin)):
    settings = site_settings.update_settings(body.currency)
    return {"message": "Settings updated successfully", "settings": serialize(settings)}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if config.DATABASE_URL else "❌ Not Set"
            response["database_name"] = config.DATABASE_NAME
            try:
                collections = database.db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
                response["connection_status"] = "Connected"
            except PyMongoError as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
