"""
Base Repository Pattern
Provides common CRUD operations for all repositories
"""

from typing import Generic, TypeVar, Type, Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from ticketbridge.models.base import Base
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations"""

    def __init__(self, model: Type[ModelType], db: Session):
        """
        Initialize repository

        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    def create(self, obj_data: Dict[str, Any], commit: bool = True) -> ModelType:
        """
        Create a new record

        Args:
            obj_data: Dictionary of object attributes
            commit: Commit immediately, or leave it to the caller's unit of work

        Returns:
            Created object
        """
        try:
            db_obj = self.model(**obj_data)
            self.db.add(db_obj)
            if commit:
                self.db.commit()
                self.db.refresh(db_obj)
            else:
                self.db.flush()
            return db_obj
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model.__name__}: {e}")
            self.db.rollback()
            raise

    def get(self, id: int) -> Optional[ModelType]:
        """
        Get record by ID

        Args:
            id: Record ID

        Returns:
            Found object or None
        """
        return self.db.query(self.model).filter(self.model.id == id).first()

    def update(self, db_obj: ModelType, obj_data: Dict[str, Any], commit: bool = True) -> ModelType:
        """
        Update existing record

        Args:
            db_obj: Existing database object
            obj_data: Dictionary of updated attributes

        Returns:
            Updated object
        """
        try:
            for key, value in obj_data.items():
                if hasattr(db_obj, key):
                    setattr(db_obj, key, value)

            if commit:
                self.db.commit()
                self.db.refresh(db_obj)
            else:
                self.db.flush()
            return db_obj
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model.__name__}: {e}")
            self.db.rollback()
            raise

    def delete(self, db_obj: ModelType, commit: bool = True) -> None:
        """Delete a record"""
        try:
            self.db.delete(db_obj)
            if commit:
                self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self.model.__name__}: {e}")
            self.db.rollback()
            raise

    def commit(self) -> None:
        """Commit the current unit of work"""
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error committing {self.model.__name__} changes: {e}")
            self.db.rollback()
            raise
