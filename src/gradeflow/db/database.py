"""SQLite database connection and schema management.

Local relational store for classes, curriculum skills, exams, answer keys,
student profiles, graded test results and practice tracking.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/gradeflow.db")

# Current database path (module-level, set by init_db)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/gradeflow.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Path of the active database."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM exams").fetchall()
    """
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS classes (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            subject TEXT NOT NULL,
            grade TEXT NOT NULL,
            teacher TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Curriculum skills
        CREATE TABLE IF NOT EXISTS content_skills (
            id TEXT PRIMARY KEY,
            skill_name TEXT NOT NULL,
            skill_description TEXT,
            topic TEXT,
            subject TEXT NOT NULL,
            grade TEXT NOT NULL,
            UNIQUE (skill_name, subject, grade)
        );

        CREATE TABLE IF NOT EXISTS subject_skills (
            id TEXT PRIMARY KEY,
            skill_name TEXT NOT NULL,
            skill_description TEXT,
            subject TEXT NOT NULL,
            grade TEXT NOT NULL,
            UNIQUE (skill_name, subject, grade)
        );

        CREATE TABLE IF NOT EXISTS class_content_skills (
            class_id TEXT NOT NULL REFERENCES classes(id) ON DELETE CASCADE,
            content_skill_id TEXT NOT NULL REFERENCES content_skills(id) ON DELETE CASCADE,
            PRIMARY KEY (class_id, content_skill_id)
        );

        -- Exams and answer keys
        CREATE TABLE IF NOT EXISTS exams (
            exam_id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            class_id TEXT REFERENCES classes(id) ON DELETE SET NULL,
            total_points REAL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS answer_keys (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            exam_id TEXT NOT NULL REFERENCES exams(exam_id) ON DELETE CASCADE,
            question_number INTEGER NOT NULL,
            question_text TEXT NOT NULL,
            question_type TEXT NOT NULL,
            correct_answer TEXT NOT NULL,
            points REAL NOT NULL DEFAULT 1,
            options TEXT,
            UNIQUE (exam_id, question_number)
        );

        -- Students and results
        CREATE TABLE IF NOT EXISTS student_profiles (
            id TEXT PRIMARY KEY,
            student_name TEXT NOT NULL UNIQUE,
            email TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS test_results (
            id TEXT PRIMARY KEY,
            student_id TEXT NOT NULL REFERENCES student_profiles(id) ON DELETE CASCADE,
            exam_id TEXT NOT NULL,
            class_id TEXT,
            overall_score REAL NOT NULL DEFAULT 0,
            total_points_earned REAL NOT NULL DEFAULT 0,
            total_points_possible REAL NOT NULL DEFAULT 0,
            ai_feedback TEXT,
            detailed_analysis TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS content_skill_scores (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            test_result_id TEXT NOT NULL REFERENCES test_results(id) ON DELETE CASCADE,
            skill_name TEXT NOT NULL,
            score REAL NOT NULL DEFAULT 0,
            points_earned REAL NOT NULL DEFAULT 0,
            points_possible REAL NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS subject_skill_scores (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            test_result_id TEXT NOT NULL REFERENCES test_results(id) ON DELETE CASCADE,
            skill_name TEXT NOT NULL,
            score REAL NOT NULL DEFAULT 0,
            points_earned REAL NOT NULL DEFAULT 0,
            points_possible REAL NOT NULL DEFAULT 0
        );

        -- Practice tracking
        CREATE TABLE IF NOT EXISTS student_practice_sessions (
            id TEXT PRIMARY KEY,
            student_id TEXT NOT NULL,
            student_name TEXT,
            skill_name TEXT NOT NULL,
            current_skill_score REAL,
            class_id TEXT,
            class_name TEXT,
            subject TEXT,
            grade TEXT,
            difficulty_level TEXT NOT NULL,
            question_count INTEGER NOT NULL DEFAULT 4,
            exercise_generated INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS student_practice_analytics (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id TEXT NOT NULL,
            skill_name TEXT NOT NULL,
            total_practice_sessions INTEGER NOT NULL DEFAULT 0,
            last_practiced_at TEXT,
            UNIQUE (student_id, skill_name)
        );

        -- Concepts students missed, grown from mistake analysis
        CREATE TABLE IF NOT EXISTS concept_index (
            id TEXT PRIMARY KEY,
            concept_name TEXT NOT NULL,
            subject TEXT,
            grade TEXT,
            description TEXT,
            keywords TEXT,  -- JSON array
            related_skills TEXT,  -- JSON array
            usage_count INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Question to skill mapping per exam
        CREATE TABLE IF NOT EXISTS exam_skill_analysis (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            exam_id TEXT NOT NULL UNIQUE REFERENCES exams(exam_id),
            analysis_status TEXT NOT NULL,
            total_questions INTEGER NOT NULL DEFAULT 0,
            mapped_questions INTEGER NOT NULL DEFAULT 0,
            content_skills_found INTEGER NOT NULL DEFAULT 0,
            subject_skills_found INTEGER NOT NULL DEFAULT 0,
            ai_analysis_data TEXT,  -- JSON
            error_message TEXT,
            analysis_started_at TEXT,
            analysis_completed_at TEXT
        );

        CREATE TABLE IF NOT EXISTS exam_skill_mappings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            exam_id TEXT NOT NULL REFERENCES exams(exam_id),
            question_number INTEGER NOT NULL,
            skill_type TEXT NOT NULL CHECK (skill_type IN ('content', 'subject')),
            skill_id TEXT,
            skill_name TEXT NOT NULL,
            skill_weight REAL NOT NULL DEFAULT 1,
            confidence REAL NOT NULL DEFAULT 1
        );

        CREATE INDEX IF NOT EXISTS idx_exams_class ON exams(class_id);
        CREATE INDEX IF NOT EXISTS idx_skill_mappings_exam ON exam_skill_mappings(exam_id);
        CREATE INDEX IF NOT EXISTS idx_answer_keys_exam ON answer_keys(exam_id);
        CREATE INDEX IF NOT EXISTS idx_test_results_student ON test_results(student_id);
        """
    )
