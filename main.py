import logging
import os
import secrets
import time
from decimal import Decimal
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from fastapi import BackgroundTasks, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

import config
import database
import mailer
import orders
from database import get_db, init_db
from models import ContactInquiry, Order, OrderItem, OrderStatus, Product, Review, User, WishlistItem
from schemas import (
    AdminOrderOut,
    AdminStats,
    AuthResponse,
    ContactReceipt,
    ContactRequest,
    ImageUploadOut,
    LoginRequest,
    OrderCreate,
    OrderDetail,
    OrderItemOut,
    OrderOut,
    OrderStatusUpdate,
    OrderWithItems,
    PasswordUpdate,
    ProductIn,
    ProductOut,
    ProductUpdate,
    ProfileResponse,
    ProfileUpdate,
    PublicReview,
    RegisterRequest,
    ReviewIn,
    ReviewOut,
    UserPublic,
    WishlistAdd,
    WishlistOut,
)
from security import create_access_token, get_current_user, hash_password, require_admin, verify_password

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("storefront.api")

app = FastAPI(title="SoleMate API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

UPLOAD_CHUNK_SIZE = 64 * 1024

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


# Error mapping

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"detail": f"{loc}: {msg}" if loc else msg})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content={"detail": "A record with this information already exists"})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Seed the admin account on startup

@app.on_event("startup")
def startup():
    init_db()
    seed_admin()


def seed_admin():
    if not (config.ADMIN_EMAIL and config.ADMIN_PASSWORD):
        return
    with database.SessionLocal() as db:
        existing = db.execute(select(User).where(User.email == config.ADMIN_EMAIL)).scalar_one_or_none()
        if existing:
            existing.role = "admin"
            existing.password_hash = hash_password(config.ADMIN_PASSWORD)
        else:
            db.add(User(
                email=config.ADMIN_EMAIL,
                password_hash=hash_password(config.ADMIN_PASSWORD),
                full_name="Admin",
                role="admin",
            ))
        db.commit()
    logger.info("Admin account %s ready", config.ADMIN_EMAIL)


@app.get("/")
def read_root():
    return {"message": "SoleMate API Running"}


# Auth

@app.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    email = str(payload.email).strip().lower()
    if db.execute(select(User.id).where(User.email == email)).first():
        raise HTTPException(status_code=409, detail="Email already registered")
    user = User(email=email, password_hash=hash_password(payload.password), full_name=payload.full_name)
    db.add(user)
    db.commit()
    logger.info("Registered user %s", user.id)
    return {"user": user, "access_token": create_access_token(user.id)}


@app.post("/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    email = str(payload.email).strip().lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is inactive. Please contact support.")
    return {"user": user, "access_token": create_access_token(user.id)}


@app.get("/auth/me", response_model=UserPublic)
def me(user: User = Depends(get_current_user)):
    return user


@app.patch("/auth/profile", response_model=ProfileResponse)
def update_profile(payload: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    if changes.get("avatar_url") is not None:
        changes["avatar_url"] = str(changes["avatar_url"])

    account = db.get(User, user.id)
    for field, value in changes.items():
        setattr(account, field, value)
    db.commit()
    return {"message": "Profile updated successfully", "user": account}


@app.post("/auth/update-password")
def update_password(payload: PasswordUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    account = db.get(User, user.id)
    account.password_hash = hash_password(payload.password)
    db.commit()
    logger.info("Password updated for user %s", account.id)
    return {"message": "Password updated successfully"}


# Public catalog

def _parse_product_filters(featured, search, ids, limit):
    featured_value = None
    if featured is not None:
        if featured not in ("true", "false"):
            raise HTTPException(status_code=400, detail="featured must be true or false")
        featured_value = featured == "true"

    search = (search or "").strip()
    if len(search) > 100:
        raise HTTPException(status_code=400, detail="search must be 100 characters or less")

    id_list = []
    for raw in (ids or "").split(","):
        raw = raw.strip()
        if not raw:
            continue
        try:
            id_list.append(UUID(raw))
        except ValueError:
            raise HTTPException(status_code=400, detail="ids must be a comma separated list of UUIDs")

    limit_value = None
    if limit is not None:
        try:
            limit_value = int(limit)
        except ValueError:
            limit_value = 0
        if not 1 <= limit_value <= 100:
            raise HTTPException(status_code=400, detail="limit must be an integer between 1 and 100")

    return featured_value, search, id_list, limit_value


@app.get("/products", response_model=List[ProductOut])
def list_products(
    featured: Optional[str] = None,
    search: Optional[str] = None,
    ids: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
):
    featured_value, search, id_list, limit_value = _parse_product_filters(featured, search, ids, limit)

    stmt = select(Product)
    if featured_value is not None:
        stmt = stmt.where(Product.featured == featured_value)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            Product.name.ilike(pattern),
            Product.category.ilike(pattern),
            func.coalesce(Product.description, "").ilike(pattern),
        ))
    if id_list:
        stmt = stmt.where(Product.id.in_(id_list))
    stmt = stmt.order_by(Product.created_at.desc())
    if limit_value:
        stmt = stmt.limit(limit_value)

    products = list(db.execute(stmt).scalars())
    if id_list:
        position = {pid: index for index, pid in enumerate(id_list)}
        products.sort(key=lambda p: position.get(p.id, len(position)))
    return products


@app.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: UUID, db: Session = Depends(get_db)):
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.get("/products/{product_id}/reviews", response_model=List[PublicReview])
def product_reviews(product_id: UUID, db: Session = Depends(get_db)):
    rows = db.execute(
        select(Review, User.full_name)
        .outerjoin(User, User.id == Review.user_id)
        .where(Review.product_id == product_id)
        .order_by(Review.created_at.desc())
    ).all()
    return [
        {
            "id": review.id,
            "product_id": review.product_id,
            "rating": review.rating,
            "title": review.title,
            "content": review.content,
            "created_at": review.created_at,
            "reviewer_name": full_name or "Anonymous",
        }
        for review, full_name in rows
    ]


@app.post("/contact", response_model=ContactReceipt, status_code=201)
def contact(payload: ContactRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    inquiry = ContactInquiry(
        name=payload.name,
        email=str(payload.email),
        subject=payload.subject,
        message=payload.message,
    )
    db.add(inquiry)
    db.commit()
    background_tasks.add_task(
        mailer.notify_contact_inquiry,
        str(inquiry.id), inquiry.name, inquiry.email, inquiry.subject, inquiry.message,
    )
    return {"inquiry_id": inquiry.id, "created_at": inquiry.created_at}


# Wishlist

@app.get("/user/wishlist", response_model=WishlistOut)
def get_wishlist(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ids = db.execute(
        select(WishlistItem.product_id)
        .where(WishlistItem.user_id == user.id)
        .order_by(WishlistItem.created_at.desc())
    ).scalars()
    return {"wishlist_ids": list(ids)}


@app.post("/user/wishlist", status_code=201)
def add_to_wishlist(payload: WishlistAdd, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if db.get(Product, payload.product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")
    existing = db.execute(
        select(WishlistItem.id).where(
            WishlistItem.user_id == user.id,
            WishlistItem.product_id == payload.product_id,
        )
    ).first()
    if not existing:
        db.add(WishlistItem(user_id=user.id, product_id=payload.product_id))
        db.commit()
    return {"message": "Added to wishlist"}


@app.delete("/user/wishlist/{product_id}")
def remove_from_wishlist(product_id: UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = db.execute(
        select(WishlistItem).where(WishlistItem.user_id == user.id, WishlistItem.product_id == product_id)
    ).scalar_one_or_none()
    if item is not None:
        db.delete(item)
        db.commit()
    return {"message": "Removed from wishlist"}


# Orders

@app.get("/user/orders", response_model=List[OrderWithItems])
def list_my_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    stmt = (
        select(Order)
        .where(Order.user_id == user.id)
        .options(selectinload(Order.order_items))
        .order_by(Order.created_at.desc())
    )
    return list(db.execute(stmt).scalars())


@app.get("/user/orders/{order_id}", response_model=OrderDetail)
def get_my_order(order_id: UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = db.execute(
        select(Order)
        .where(Order.id == order_id, Order.user_id == user.id)
        .options(selectinload(Order.order_items))
    ).scalar_one_or_none()
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"order": order, "items": order.order_items}


@app.post("/user/orders", response_model=OrderOut, status_code=201)
def place_order(payload: OrderCreate, user: User = Depends(get_current_user)):
    try:
        return orders.place_order(user.id, payload.items, payload.total, payload.shipping_address)
    except orders.OrderError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


# Reviews

@app.get("/user/reviews/{product_id}/me", response_model=Optional[ReviewOut])
def my_review(product_id: UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.execute(
        select(Review).where(Review.product_id == product_id, Review.user_id == user.id)
    ).scalar_one_or_none()


@app.post("/user/reviews", response_model=ReviewOut, status_code=201)
def create_review(payload: ReviewIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if db.get(Product, payload.product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")
    existing = db.execute(
        select(Review.id).where(Review.product_id == payload.product_id, Review.user_id == user.id)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="You already reviewed this product")
    review = Review(
        product_id=payload.product_id,
        user_id=user.id,
        rating=payload.rating,
        title=payload.title or None,
        content=payload.content or None,
    )
    db.add(review)
    db.commit()
    return review


# Admin

@app.get("/admin/stats", response_model=AdminStats)
def admin_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    revenue = db.execute(select(func.coalesce(func.sum(Order.total), 0))).scalar_one()
    return {
        "total_products": db.execute(select(func.count(Product.id))).scalar_one(),
        "total_orders": db.execute(select(func.count(Order.id))).scalar_one(),
        "total_users": db.execute(select(func.count(User.id))).scalar_one(),
        "total_revenue": Decimal(str(revenue)),
        "pending_orders": db.execute(
            select(func.count(Order.id)).where(Order.status == OrderStatus.PENDING.value)
        ).scalar_one(),
        "out_of_stock": db.execute(
            select(func.count(Product.id)).where(Product.in_stock.is_(False))
        ).scalar_one(),
    }


@app.get("/admin/orders", response_model=List[AdminOrderOut])
def admin_orders(limit: Optional[int] = None, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if limit is not None and not 1 <= limit <= 100:
        raise HTTPException(status_code=400, detail="limit must be an integer between 1 and 100")
    stmt = (
        select(Order, User.full_name, User.email)
        .outerjoin(User, User.id == Order.user_id)
        .order_by(Order.created_at.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    result = []
    for order, full_name, email in db.execute(stmt).all():
        row = OrderOut.model_validate(order).model_dump()
        row.update(customer_name=full_name, customer_email=email)
        result.append(row)
    return result


@app.get("/admin/orders/{order_id}/items", response_model=List[OrderItemOut])
def admin_order_items(order_id: UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.position)
    return list(db.execute(stmt).scalars())


@app.patch("/admin/orders/{order_id}/status", response_model=OrderOut)
def admin_update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        order = orders.update_order_status(db, order_id, payload.status)
    except orders.OrderError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    db.commit()
    return order


@app.get("/admin/products", response_model=List[ProductOut])
def admin_products(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return list(db.execute(select(Product).order_by(Product.created_at.desc())).scalars())


@app.post("/admin/products", response_model=ProductOut, status_code=201)
def create_product(payload: ProductIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    data = payload.model_dump(exclude={"stock_quantity"})
    data["sizes"] = data["sizes"] or []
    data["colors"] = data["colors"] or []
    product = Product(**data)
    product.set_stock(payload.stock_quantity)
    db.add(product)
    db.commit()
    logger.info("Product %s created by %s", product.id, admin.email)
    return product


@app.patch("/admin/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = orders.lock_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    changes = payload.model_dump(exclude_none=True)
    stock = changes.pop("stock_quantity", None)
    for field, value in changes.items():
        setattr(product, field, value)
    product.set_stock(product.stock_quantity if stock is None else stock)
    db.commit()
    return product


@app.delete("/admin/products/{product_id}")
def delete_product(product_id: UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    db.delete(product)
    db.commit()
    logger.info("Product %s deleted by %s", product_id, admin.email)
    return {"message": "Product deleted"}


@app.post("/admin/upload/product-image", response_model=ImageUploadOut, status_code=201)
async def upload_product_image(
    request: Request,
    image: UploadFile = File(...),
    admin: User = Depends(require_admin),
):
    ext = ALLOWED_IMAGE_TYPES.get(image.content_type or "")
    if ext is None:
        raise HTTPException(status_code=400, detail="Only JPEG, PNG, WEBP, and GIF images are allowed")
    too_large = HTTPException(status_code=400, detail="Image must be 5MB or smaller")
    if image.size is not None and image.size > config.MAX_IMAGE_SIZE_BYTES:
        raise too_large
    content = bytearray()
    while True:
        chunk = await image.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        content.extend(chunk)
        if len(content) > config.MAX_IMAGE_SIZE_BYTES:
            raise too_large

    target_dir = Path(config.UPLOAD_DIR) / "products"
    target_dir.mkdir(parents=True, exist_ok=True)
    file_name = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}.{ext}"
    (target_dir / file_name).write_bytes(bytes(content))

    base = (config.BACKEND_URL or str(request.base_url)).rstrip("/")
    return {"image_url": f"{base}/uploads/products/{file_name}"}


@app.get("/uploads/{file_path:path}")
def serve_upload(file_path: str):
    # Same directory upload_product_image writes to, read per request.
    root = Path(config.UPLOAD_DIR).resolve()
    target = (root / file_path).resolve()
    if not target.is_relative_to(root) or not target.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(target)


@app.get("/health")
def health():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_dialect": database.engine.dialect.name,
        "connection_status": "Not Connected",
    }
    try:
        database.ping()
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except SQLAlchemyError as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
