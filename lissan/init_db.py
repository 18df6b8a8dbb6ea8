#!/usr/bin/env python3
"""
Database initialization script for Lissan
Creates tables and, when DEMO_COMPANY_EMAIL and DEMO_COMPANY_PASSWORD are set,
a demo company with sample workflows

    python -m lissan.init_db
"""
import os
import sys

from sqlalchemy import text
from sqlalchemy.orm import Session

from .database import engine, Base, SessionLocal
from .auth import register_company
from . import models

SAMPLE_WORKFLOWS = [
    {
        "name": "Document Summary",
        "description": "Summarize the uploaded documents",
        "config": {"type": "document-summary"}
    },
    {
        "name": "Amharic / English Translation",
        "description": "Translate text between Amharic and English",
        "config": {"type": "amharic-english-translation"}
    },
    {
        "name": "Document Data Extraction",
        "description": "Word counts and script detection for every document",
        "config": {"type": "data-extraction"}
    },
]

def test_connection():
    """Test database connection"""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            print("✅ Database connection successful!")
            return True
    except Exception as e:
        print(f"❌ Database connection failed: {e}")
        return False

def create_tables():
    """Create all tables"""
    try:
        print("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        print("✅ Tables created successfully!")
        return True
    except Exception as e:
        print(f"❌ Failed to create tables: {e}")
        return False

def create_demo_company(db: Session, name: str, email: str, password: str) -> models.Company:
    """Create the demo company and its sample workflows, or return it if it already exists"""
    existing = db.query(models.Company).filter(models.Company.email == email).first()
    if existing:
        return existing

    company = register_company(db, name, email, password)
    for workflow in SAMPLE_WORKFLOWS:
        db.add(models.Workflow(company_id=company.id, is_active=True, **workflow))
    db.commit()
    return company

def main():
    """Main initialization function"""
    print("🚀 Initializing Lissan...")

    if not test_connection():
        sys.exit(1)

    if not create_tables():
        sys.exit(1)

    email = os.getenv("DEMO_COMPANY_EMAIL")
    password = os.getenv("DEMO_COMPANY_PASSWORD")
    if email and password:
        db = SessionLocal()
        try:
            company = create_demo_company(db, os.getenv("DEMO_COMPANY_NAME", "Demo Company"), email, password)
            print(f"🏢 Demo company: {company.email}")
            print(f"🔑 Widget API key: {company.api_key}")
        except Exception as e:
            print(f"❌ Failed to create demo company: {e}")
            sys.exit(1)
        finally:
            db.close()

    print("\n🎉 Database initialization completed successfully!")

if __name__ == "__main__":
    main()
