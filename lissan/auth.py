from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import logging
import jwt
from passlib.context import CryptContext
from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from .database import get_db
from .config import settings
from .exceptions import AuthError, ConflictError, ForbiddenError, ValidationError
from . import models

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

# JWT token scheme; missing credentials are reported by us, not by FastAPI
security = HTTPBearer(auto_error=False)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt

def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the payload."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except jwt.PyJWTError:
        return None

def create_login_token(company: models.Company) -> str:
    """Create a session token carrying the company context."""
    return create_access_token(data={
        "sub": company.id,
        "id": company.id,
        "email": company.email,
        "companyId": company.id
    })

# =============================================================================
# COMPANY ACCOUNTS
# =============================================================================

def normalize_email(email: str) -> str:
    # Same form EmailStr produces: domain lowercased, local part kept as typed
    local, at, domain = email.strip().rpartition("@")
    if not at:
        return email.strip()
    return f"{local}@{domain.lower()}"

def register_company(db: Session, name: str, email: str, password: str) -> models.Company:
    """Create a company with a hashed password and a fresh API key."""
    if not name or not email or not password:
        raise ValidationError("All fields are required")
    email = normalize_email(email)
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")

    existing = db.query(models.Company).filter(models.Company.email == email).first()
    if existing:
        raise ConflictError("Company with this email already exists")

    company = models.Company(
        name=name,
        email=email,
        hashed_password=get_password_hash(password),
        api_key=models.generate_api_key(),
        is_active=True
    )
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info(f"Registered company {company.id}")
    return company

def authenticate_company(db: Session, email: str, password: str) -> models.Company:
    """Check credentials; unknown email and wrong password look the same to the caller."""
    if not email or not password:
        raise ValidationError("Email and password are required")

    company = db.query(models.Company).filter(models.Company.email == normalize_email(email)).first()
    if not company:
        raise AuthError("Invalid credentials")
    if not company.is_active:
        raise AuthError("Account is deactivated")
    if not verify_password(password, company.hashed_password):
        raise AuthError("Invalid credentials")
    return company

def refresh_api_key(db: Session, company: models.Company) -> str:
    """Replace the company's API key; the previous key stops working immediately."""
    company.api_key = models.generate_api_key()
    db.commit()
    db.refresh(company)
    return company.api_key

# =============================================================================
# REQUEST AUTHENTICATION
# =============================================================================

def get_current_company(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> models.Company:
    """Resolve the tenant from a bearer token, re-checking that it is still active."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Access token required")

    payload = verify_token(credentials.credentials)
    if payload is None or not payload.get("companyId"):
        raise ForbiddenError("Invalid token")

    company = db.query(models.Company).filter(models.Company.id == payload["companyId"]).first()
    if company is None or not company.is_active:
        raise AuthError("Invalid or inactive account")

    return company

def get_api_key_company(
    x_api_key: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> models.Company:
    """Resolve the tenant from the widget's x-api-key header."""
    if not x_api_key:
        raise AuthError("API key required")

    company = db.query(models.Company).filter(models.Company.api_key == x_api_key).first()
    if company is None or not company.is_active:
        raise AuthError("Invalid API key")

    return company
