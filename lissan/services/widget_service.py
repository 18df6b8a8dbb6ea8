"""
Widget Service
Per-company widget settings, created with defaults on first read
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas

logger = logging.getLogger(__name__)


class WidgetService:

    def __init__(self, db: Session):
        self.db = db

    def get_settings(self, company_id: str) -> models.WidgetSettings:
        settings = self._find(company_id)
        if settings:
            return settings

        settings = models.WidgetSettings(company_id=company_id, allowed_domains=[])
        self.db.add(settings)
        try:
            self.db.commit()
        except IntegrityError:
            # Created by a concurrent first read
            self.db.rollback()
            settings = self._find(company_id)
            if settings is None:
                raise
        else:
            self.db.refresh(settings)
            logger.info(f"Created default widget settings for company {company_id}")
        return settings

    def update_settings(self, company_id: str, data: schemas.WidgetSettingsUpdate) -> models.WidgetSettings:
        """Apply the fields present in the update; absent fields keep their value"""
        settings = self.get_settings(company_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(settings, field, value)

        self.db.commit()
        self.db.refresh(settings)
        return settings

    def _find(self, company_id: str):
        return self.db.query(models.WidgetSettings).filter(
            models.WidgetSettings.company_id == company_id
        ).first()
