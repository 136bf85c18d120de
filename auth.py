import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from fastapi import APIRouter, Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from schemas import Account, Customer

logger = logging.getLogger(__name__)

# Security/JWT
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
VERIFICATION_TTL = timedelta(hours=24)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_token(account: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    payload = {
        "sub": str(account["_id"]),
        "role": account.get("role"),
        "exp": datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def save_account(db: Database, account: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insert or update an account document.

    The password is hashed only when it differs from the stored value, so
    re-saving a loaded account keeps its existing hash. A username taken by
    another account raises ValidationError via the unique index.
    """
    doc = dict(account)
    existing = db["account"].find_one({"_id": doc["_id"]}) if doc.get("_id") else None
    if existing is None or existing.get("password") != doc.get("password"):
        doc["password"] = hash_password(doc["password"])
    now = utcnow()
    doc["updatedAt"] = now
    try:
        if existing is None:
            doc.setdefault("createdAt", now)
            doc["_id"] = db["account"].insert_one(doc).inserted_id
        else:
            db["account"].replace_one({"_id": doc["_id"]}, doc)
    except DuplicateKeyError:
        raise ValidationError("Username already registered")
    return doc


def public_account(account: Dict[str, Any]) -> Dict[str, Any]:
    hidden = ("password", "verificationToken", "verificationExpires")
    return serialize_doc({k: v for k, v in account.items() if k not in hidden})


def authenticate(db: Database, token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        raise AuthenticationError("Invalid token")
    account_id = to_object_id(payload.get("sub"))
    if account_id is None:
        raise AuthenticationError("Invalid token")
    account = db["account"].find_one({"_id": account_id})
    if not account:
        raise AuthenticationError("Invalid token user")
    return account


def get_current_account(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)):
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be a Bearer token")
    return authenticate(db, token.strip())


def authorize(roles: Iterable[str]):
    """Build a dependency that admits only accounts whose role is in ``roles``."""
    allowed = frozenset(roles)

    def require_role(account=Depends(get_current_account)):
        if account.get("role") not in allowed:
            raise AuthorizationError("Access denied")
        return account

    return require_role


# Request models
class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    name: str
    email: EmailStr


class LoginRequest(BaseModel):
    username: str
    password: str


router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", status_code=201)
def register(req: RegisterRequest, db: Database = Depends(get_db)):
    if db["account"].find_one({"username": req.username}):
        raise ValidationError("Username already registered")
    account = Account(
        username=req.username,
        password=req.password,
        role="customer",
        verificationToken=secrets.token_urlsafe(32),
        verificationExpires=utcnow() + VERIFICATION_TTL,
    )
    saved = save_account(db, account.model_dump())
    create_document(db, "customer", Customer(accountId=saved["_id"], name=req.name, email=req.email))
    logger.info("Registered account %s", req.username)
    return {
        "message": "Account created. Please verify your email.",
        "account": public_account(saved),
        "verificationToken": saved["verificationToken"],
    }


@router.get("/verify/{token}")
def verify_email(token: str, db: Database = Depends(get_db)):
    account = db["account"].find_one({"verificationToken": token})
    if not account:
        raise NotFoundError("Verification token not found")
    expires = account.get("verificationExpires")
    if expires is not None and expires < utcnow():
        raise ValidationError("Verification token has expired")
    account.update({"isVerified": True, "verificationToken": None, "verificationExpires": None})
    save_account(db, account)
    logger.info("Verified account %s", account["username"])
    return {"message": "Email verified"}


@router.post("/login")
def login(req: LoginRequest, db: Database = Depends(get_db)):
    account = db["account"].find_one({"username": req.username})
    if not account or not verify_password(req.password, account.get("password", "")):
        raise AuthenticationError("Invalid credentials")
    if not account.get("isVerified"):
        raise AuthorizationError("Please verify your email first")
    return {"token": create_token(account), "account": public_account(account)}
