from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr
from pymongo.errors import DuplicateKeyError

import config
from database import collection, create_document, find_by_id
from errors import AuthError, ConfigError, ForbiddenError, NotFoundError, ValidationError
from schemas import Admin, LoginRequest, RegisterRequest

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _secret() -> str:
    # Refuse to sign or verify anything without a configured secret.
    if not config.JWT_SECRET:
        raise ConfigError("Server configuration error: JWT secret not set")
    return config.JWT_SECRET


def create_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    secret = _secret()
    to_encode = data.copy()
    minutes = expires_minutes if expires_minutes is not None else config.JWT_EXPIRES_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret, algorithm=config.JWT_ALG)


class AuthAdmin(BaseModel):
    id: str
    username: str
    role: str = "admin"


class AdminOut(BaseModel):
    id: str
    username: str
    email: EmailStr
    role: str


def verify_token(token: str) -> AuthAdmin:
    secret = _secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[config.JWT_ALG])
    except JWTError:
        raise AuthError("Invalid or expired token")
    if not payload.get("id"):
        raise AuthError("Invalid or expired token")
    return AuthAdmin(id=payload["id"], username=payload.get("username", ""), role=payload.get("role", "admin"))


def get_current_admin(authorization: Optional[str] = Header(None)) -> AuthAdmin:
    _secret()
    if not authorization:
        raise AuthError("Missing Authorization header")
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid auth scheme")
    except ValueError:
        raise AuthError("Invalid Authorization header")
    admin = verify_token(token)
    if admin.role != "admin":
        raise ForbiddenError("Admin only")
    return admin


def _token_for(admin_id: str, username: str, role: str) -> str:
    return create_token({"id": admin_id, "username": username, "role": role})


def register(req: RegisterRequest) -> str:
    _secret()
    if req.password != req.confirm_password:
        raise ValidationError("Passwords do not match")
    existing = collection("admin").find_one({"$or": [{"username": req.username}, {"email": req.email}]})
    if existing:
        raise ValidationError("Username or email already exists")
    admin_doc = Admin(username=req.username, email=req.email, password_hash=hash_password(req.password))
    try:
        admin_id = create_document("admin", admin_doc)
    except DuplicateKeyError:
        raise ValidationError("Username or email already exists")
    return _token_for(admin_id, req.username, admin_doc.role)


def login(req: LoginRequest):
    _secret()
    admin = collection("admin").find_one({"email": req.email})
    if not admin or not verify_password(req.password, admin.get("password_hash", "")):
        raise AuthError("Invalid email or password")
    admin_id = str(admin["_id"])
    token = _token_for(admin_id, admin["username"], admin.get("role", "admin"))
    return token, AdminOut(id=admin_id, username=admin["username"], email=admin["email"], role=admin.get("role", "admin"))


def current_admin_profile(admin: AuthAdmin) -> AdminOut:
    doc = find_by_id("admin", admin.id)
    if not doc:
        raise NotFoundError("Admin not found")
    return AdminOut(id=str(doc["_id"]), username=doc["username"], email=doc["email"], role=doc.get("role", "admin"))
