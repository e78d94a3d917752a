"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions for classes, skills, exams and results
"""

from gradeflow.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
