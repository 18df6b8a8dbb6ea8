from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import (
    authenticate_company,
    create_login_token,
    get_current_company,
    refresh_api_key,
    register_company
)
from .. import models, schemas

router = APIRouter()

@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: schemas.RegisterRequest,
    db: Session = Depends(get_db)
):
    """Register a company and sign it in."""
    company = register_company(db, request.name, request.email, request.password)

    return schemas.AuthResponse(
        token=create_login_token(company),
        company=schemas.CompanyPublic.model_validate(company)
    )

@router.post("/login", response_model=schemas.AuthResponse)
async def login(
    request: schemas.LoginRequest,
    db: Session = Depends(get_db)
):
    company = authenticate_company(db, request.email, request.password)

    return schemas.AuthResponse(
        token=create_login_token(company),
        company=schemas.CompanyPublic.model_validate(company)
    )

@router.get("/profile", response_model=schemas.ProfileResponse)
async def get_profile(current_company: models.Company = Depends(get_current_company)):
    """Get current company information."""
    return schemas.ProfileResponse(company=schemas.CompanyProfile.model_validate(current_company))

@router.post("/refresh-api-key", response_model=schemas.ApiKeyResponse)
async def rotate_api_key(
    db: Session = Depends(get_db),
    current_company: models.Company = Depends(get_current_company)
):
    """Issue a new widget API key; the old one stops working immediately."""
    return schemas.ApiKeyResponse(api_key=refresh_api_key(db, current_company))
