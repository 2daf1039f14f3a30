import logging
import math
import re
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

import bcrypt
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field, field_validator
from pymongo import DESCENDING, ReturnDocument

import database
from billing import BillingEngine
from config import settings
from database import BillStore, ProductStore, create_document, ensure_indexes, oid, serialize, utcnow
from errors import ProductNotFound, SequenceExhausted, TotalMismatch, UniquenessViolation
from logging_config import setup_logging
from pricing import unit_value
from schemas import CATEGORIES, BillStatus, CreateBillRequest, Product as ProductSchema, ProductIn, User as UserSchema

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

START_TIME = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate()
    if database.get_db() is not None:
        ensure_indexes(database.get_db())
    yield


app = FastAPI(title="Provision Store Billing API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBasic()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.monotonic()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("%s %s failed", request.method, request.url.path)
        raise
    logger.info("%s %s -> %d (%.3fs)", request.method, request.url.path, response.status_code, time.monotonic() - start)
    return response


# ----- Helpers -----

def collection(name: str):
    db = database.get_db()
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db[name]


def get_engine() -> BillingEngine:
    db = database.get_db()
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return BillingEngine(BillStore(db), ProductStore(db), max_attempts=settings.bill_number_max_attempts)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # malformed stored hash or a password past bcrypt's 72-byte limit
        return False


def parse_date(value: Optional[str], field: str, end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO date/datetime query value into naive UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if end_of_day and len(value) == 10:
        parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999000)
    return parsed


def pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {"current": page, "pages": math.ceil(total / limit), "total": total, "limit": limit}


def product_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = serialize(doc)
    out["total_value"] = unit_value(out["price_per_unit"], out["weight"], out["weight_unit"])
    return out


def bill_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = serialize(doc)
    out["formatted_bill_number"] = out["bill_number"].replace("BILL", "BILL-", 1)
    return out


def summarize(match: Dict[str, Any]) -> Dict[str, Any]:
    pipeline = [
        {"$match": match},
        {"$group": {"_id": None, "total_amount": {"$sum": "$total_amount"}, "total_bills": {"$sum": 1}}},
    ]
    res = list(collection("bill").aggregate(pipeline))
    if not res:
        return {"total_amount": 0, "total_bills": 0}
    return {"total_amount": round(res[0]["total_amount"], 2), "total_bills": res[0]["total_bills"]}


def name_filter(name: str) -> Dict[str, Any]:
    return {"$regex": f"^{re.escape(name)}$", "$options": "i"}


# ----- Auth (HTTP Basic) -----

class LoginResponse(BaseModel):
    id: str
    username: str
    full_name: str
    role: str


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)
    role: Literal["admin", "cashier"] = "cashier"

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, value: str) -> str:
        if len(value.encode()) > 72:
            raise ValueError("Password cannot be longer than 72 bytes")
        return value


def authenticate(credentials: HTTPBasicCredentials = Depends(security)) -> LoginResponse:
    users = collection("user")
    user = users.find_one({"username": credentials.username, "is_active": True})
    if not user or not verify_password(credentials.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials", headers={"WWW-Authenticate": "Basic"})
    return LoginResponse(id=str(user["_id"]), username=user["username"], full_name=user["full_name"], role=user.get("role", "cashier"))


@app.post("/api/auth/register", response_model=LoginResponse, status_code=201)
def register(payload: RegisterRequest):
    if collection("user").find_one({"username": payload.username}):
        raise HTTPException(status_code=400, detail="Username already exists")
    user = UserSchema(
        username=payload.username,
        full_name=payload.full_name,
        role=payload.role,
        password_hash=hash_password(payload.password),
    )
    inserted_id = create_document("user", user)
    logger.info("Registered user %s", payload.username)
    return LoginResponse(id=inserted_id, username=user.username, full_name=user.full_name, role=user.role)


@app.get("/api/auth/me", response_model=LoginResponse)
def me(user: LoginResponse = Depends(authenticate)):
    return user


# ----- Product Endpoints -----

@app.get("/api/products")
def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: LoginResponse = Depends(authenticate),
):
    fil: Dict[str, Any] = {"user_id": user.id, "is_active": True}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        fil["$or"] = [{"name": pattern}, {"category": pattern}]
    if category and category != "all":
        fil["category"] = category

    products = collection("product")
    docs = products.find(fil).sort("created_at", DESCENDING).skip((page - 1) * limit).limit(limit)
    total = products.count_documents(fil)
    return {"data": [product_out(d) for d in docs], "pagination": pagination(page, limit, total)}


@app.get("/api/products/categories")
def list_categories(user: LoginResponse = Depends(authenticate)):
    pipeline = [
        {"$match": {"user_id": user.id, "is_active": True}},
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
    ]
    counts = {c["_id"]: c["count"] for c in collection("product").aggregate(pipeline)}
    return {"data": [{"name": name, "count": counts.get(name, 0)} for name in CATEGORIES]}


def find_active_product(product_id: str, user_id: str) -> Dict[str, Any]:
    _id = oid(product_id)
    doc = collection("product").find_one({"_id": _id, "user_id": user_id, "is_active": True}) if _id else None
    if not doc:
        raise HTTPException(status_code=404, detail="Product not found")
    return doc


@app.get("/api/products/{product_id}")
def get_product(product_id: str, user: LoginResponse = Depends(authenticate)):
    return product_out(find_active_product(product_id, user.id))


@app.post("/api/products", status_code=201)
def add_product(product: ProductIn, user: LoginResponse = Depends(authenticate)):
    existing = collection("product").find_one({"user_id": user.id, "is_active": True, "name": name_filter(product.name)})
    if existing:
        raise HTTPException(status_code=400, detail="Product with this name already exists")
    doc = ProductSchema(**product.model_dump()).model_dump() | {"user_id": user.id}
    inserted_id = create_document("product", doc)
    logger.info("Added product %s (%s)", product.name, inserted_id)
    return product_out(collection("product").find_one({"_id": oid(inserted_id)}))


@app.put("/api/products/{product_id}")
def update_product(product_id: str, product: ProductIn, user: LoginResponse = Depends(authenticate)):
    current = find_active_product(product_id, user.id)
    clash = collection("product").find_one({
        "_id": {"$ne": current["_id"]},
        "user_id": user.id,
        "is_active": True,
        "name": name_filter(product.name),
    })
    if clash:
        raise HTTPException(status_code=400, detail="Another product with this name already exists")
    changes = product.model_dump() | {"updated_at": utcnow()}
    updated = collection("product").find_one_and_update(
        {"_id": current["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    return product_out(updated)


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, user: LoginResponse = Depends(authenticate)):
    current = find_active_product(product_id, user.id)
    collection("product").update_one({"_id": current["_id"]}, {"$set": {"is_active": False, "updated_at": utcnow()}})
    logger.info("Deactivated product %s", product_id)
    return {"deleted": True}


# ----- Billing / POS -----

class StatusUpdate(BaseModel):
    status: BillStatus


@app.post("/api/bills", status_code=201)
def create_bill(payload: CreateBillRequest, user: LoginResponse = Depends(authenticate), engine: BillingEngine = Depends(get_engine)):
    try:
        saved = engine.create_bill(user.id, payload)
    except ProductNotFound as exc:
        logger.info("Rejected bill for %s: %s", user.username, exc)
        raise HTTPException(status_code=400, detail={"message": str(exc), "product_ids": exc.product_ids})
    except TotalMismatch as exc:
        logger.info("Rejected bill for %s: %s", user.username, exc)
        raise HTTPException(status_code=400, detail={
            "message": str(exc),
            "calculated_total": exc.calculated_total,
            "provided_total": exc.provided_total,
        })
    except (UniquenessViolation, SequenceExhausted) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return bill_out(saved)


@app.get("/api/bills")
def list_bills(
    status: Optional[Literal["all", "draft", "completed", "cancelled"]] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    user: LoginResponse = Depends(authenticate),
):
    query: Dict[str, Any] = {"user_id": user.id}
    if status and status != "all":
        query["status"] = status

    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date", end_of_day=True)
    if start or end:
        query["created_at"] = {}
        if start:
            query["created_at"]["$gte"] = start
        if end:
            query["created_at"]["$lte"] = end

    bills = collection("bill")
    docs = bills.find(query).sort("created_at", DESCENDING).skip((page - 1) * limit).limit(limit)
    total = bills.count_documents(query)
    stats = summarize(query)
    stats["average_amount"] = round(stats["total_amount"] / stats["total_bills"], 2) if stats["total_bills"] else 0
    return {
        "data": [bill_out(d) for d in docs],
        "pagination": pagination(page, limit, total),
        "stats": stats,
    }


@app.get("/api/bills/stats/dashboard")
def dashboard(user: LoginResponse = Depends(authenticate)):
    now = utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = start_of_day.replace(day=1)
    start_of_year = start_of_month.replace(month=1)

    completed = {"user_id": user.id, "status": "completed"}
    recent = collection("bill").find(
        completed, projection={"bill_number": 1, "total_amount": 1, "created_at": 1}
    ).sort("created_at", DESCENDING).limit(5)
    return {
        "daily": summarize({**completed, "created_at": {"$gte": start_of_day}}),
        "monthly": summarize({**completed, "created_at": {"$gte": start_of_month}}),
        "yearly": summarize({**completed, "created_at": {"$gte": start_of_year}}),
        "recent_bills": [serialize(d) for d in recent],
    }


def find_bill(bill_id: str, user_id: str) -> Dict[str, Any]:
    _id = oid(bill_id)
    doc = collection("bill").find_one({"_id": _id, "user_id": user_id}) if _id else None
    if not doc:
        raise HTTPException(status_code=404, detail="Bill not found")
    return doc


@app.get("/api/bills/{bill_id}")
def get_bill(bill_id: str, user: LoginResponse = Depends(authenticate)):
    return bill_out(find_bill(bill_id, user.id))


@app.put("/api/bills/{bill_id}/status")
def update_bill_status(bill_id: str, payload: StatusUpdate, user: LoginResponse = Depends(authenticate)):
    current = find_bill(bill_id, user.id)
    updated = collection("bill").find_one_and_update(
        {"_id": current["_id"]},
        {"$set": {"status": payload.status, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Bill %s status %s -> %s", current["bill_number"], current["status"], payload.status)
    return bill_out(updated)


# ----- Misc -----

@app.get("/")
def read_root():
    return {"message": "Provision Store Billing API"}


@app.get("/api/health")
def health():
    response = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - START_TIME, 3),
        "database": "not configured",
    }
    db = database.get_db()
    if db is not None:
        try:
            db.command("ping")
            response["database"] = "connected"
        except Exception as e:
            logger.warning("Database ping failed: %s", e)
            response["database"] = f"error: {str(e)[:80]}"
    return response


if __name__ == "__main__":
    import uvicorn
    settings.validate()
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
