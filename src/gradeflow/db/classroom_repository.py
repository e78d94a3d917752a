"""Repository functions for classroom tables.

Classes, curriculum skills, exams and answer keys are written by teachers;
student profiles, test results and practice tracking are written by the
grading and practice services.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from gradeflow.db.database import get_db

logger = structlog.get_logger(__name__)


# =============================================================================
# RECORDS
# =============================================================================


@dataclass
class ClassRecord:
    """Class record from database."""

    id: str
    name: str
    subject: str
    grade: str
    teacher: str | None = None


@dataclass
class ContentSkillRecord:
    """Curriculum content skill."""

    id: str
    skill_name: str
    subject: str
    grade: str
    skill_description: str | None = None
    topic: str | None = None


@dataclass
class SubjectSkillRecord:
    """Curriculum subject (transferable) skill."""

    id: str
    skill_name: str
    subject: str
    grade: str
    skill_description: str | None = None


@dataclass
class ExamRecord:
    """Exam record from database."""

    exam_id: str
    title: str
    class_id: str | None
    total_points: float = 0


@dataclass
class AnswerKeyRecord:
    """One answer-key entry of an exam."""

    exam_id: str
    question_number: int
    question_text: str
    question_type: str
    correct_answer: str
    points: float = 1
    options: list[str] | None = None


@dataclass
class HistoricalQuestion:
    """Answer-key question from an earlier exam of the same class."""

    question_text: str
    question_type: str
    points: float
    exam_title: str = "Unknown Exam"
    options: list[str] | None = None


@dataclass
class StudentRecord:
    """Student profile."""

    id: str
    student_name: str
    email: str | None = None


@dataclass
class SkillScore:
    """Score for one skill in a graded test."""

    skill_name: str
    score: float = 0
    points_earned: float = 0
    points_possible: float = 0


@dataclass
class PracticeAnalytics:
    """Practice counters for a student and skill."""

    student_id: str
    skill_name: str
    total_practice_sessions: int
    last_practiced_at: str | None = None


@dataclass
class GradedTestRecord:
    """Stored grading result with its skill scores."""

    id: str
    student_id: str
    exam_id: str
    class_id: str | None
    overall_score: float
    total_points_earned: float
    total_points_possible: float
    ai_feedback: str | None = None
    detailed_analysis: str | None = None
    content_skill_scores: list[SkillScore] = field(default_factory=list)
    subject_skill_scores: list[SkillScore] = field(default_factory=list)


@dataclass
class ConceptRecord:
    """Entry of the missed-concept index."""

    id: str
    concept_name: str
    subject: str | None = None
    grade: str | None = None
    description: str | None = None
    keywords: list[str] = field(default_factory=list)
    related_skills: list[str] = field(default_factory=list)
    usage_count: int = 1


@dataclass
class ExamSkillMapping:
    """One question-to-skill link of an exam."""

    question_number: int
    skill_type: str
    skill_name: str
    skill_id: str | None = None
    skill_weight: float = 1.0
    confidence: float = 1.0


@dataclass
class ExamSkillAnalysisRecord:
    """Status and counters of an exam's skill mapping run."""

    exam_id: str
    analysis_status: str
    total_questions: int = 0
    mapped_questions: int = 0
    content_skills_found: int = 0
    subject_skills_found: int = 0
    ai_analysis_data: dict[str, Any] | None = None
    error_message: str | None = None
    analysis_started_at: str | None = None
    analysis_completed_at: str | None = None


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# CLASSES AND SKILLS
# =============================================================================


def insert_class(
    name: str,
    subject: str,
    grade: str,
    teacher: str | None = None,
    class_id: str | None = None,
) -> str:
    """Insert a class and return its id."""
    class_id = class_id or _new_id()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO classes (id, name, subject, grade, teacher) VALUES (?, ?, ?, ?, ?)",
            (class_id, name, subject, grade, teacher),
        )
    logger.debug("classes.inserted", class_id=class_id)
    return class_id


def get_class(class_id: str) -> ClassRecord | None:
    """Get class by id."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM classes WHERE id = ?", (class_id,)).fetchone()
    if row is None:
        return None
    return ClassRecord(
        id=row["id"],
        name=row["name"],
        subject=row["subject"],
        grade=row["grade"],
        teacher=row["teacher"],
    )


def insert_content_skill(
    skill_name: str,
    subject: str,
    grade: str,
    skill_description: str | None = None,
    topic: str | None = None,
) -> str:
    """Insert a curriculum content skill and return its id."""
    skill_id = _new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO content_skills (id, skill_name, skill_description, topic, subject, grade)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (skill_id, skill_name, skill_description, topic, subject, grade),
        )
    return skill_id


def insert_subject_skill(
    skill_name: str,
    subject: str,
    grade: str,
    skill_description: str | None = None,
) -> str:
    """Insert a curriculum subject skill and return its id."""
    skill_id = _new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO subject_skills (id, skill_name, skill_description, subject, grade)
            VALUES (?, ?, ?, ?, ?)
            """,
            (skill_id, skill_name, skill_description, subject, grade),
        )
    return skill_id


def link_content_skill(class_id: str, content_skill_id: str) -> None:
    """Attach a content skill to a class."""
    with get_db() as conn:
        conn.execute(
            "INSERT OR IGNORE INTO class_content_skills (class_id, content_skill_id) VALUES (?, ?)",
            (class_id, content_skill_id),
        )


def _content_skill_from_row(row: sqlite3.Row) -> ContentSkillRecord:
    return ContentSkillRecord(
        id=row["id"],
        skill_name=row["skill_name"],
        subject=row["subject"],
        grade=row["grade"],
        skill_description=row["skill_description"],
        topic=row["topic"],
    )


def list_class_content_skills(class_id: str) -> list[ContentSkillRecord]:
    """Content skills linked to a class."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT cs.* FROM content_skills cs
            JOIN class_content_skills ccs ON ccs.content_skill_id = cs.id
            WHERE ccs.class_id = ?
            ORDER BY cs.skill_name
            """,
            (class_id,),
        ).fetchall()
    return [_content_skill_from_row(r) for r in rows]


def list_known_skill_names(class_id: str) -> list[str]:
    """Names of every skill a class can be tested on (content + subject)."""
    cls = get_class(class_id)
    names = [s.skill_name for s in list_class_content_skills(class_id)]
    if cls is not None:
        with get_db() as conn:
            rows = conn.execute(
                "SELECT skill_name FROM subject_skills WHERE subject = ? AND grade = ?",
                (cls.subject, cls.grade),
            ).fetchall()
        names.extend(r["skill_name"] for r in rows)
    return names


def find_content_skill(skill_name: str, subject: str, grade: str) -> ContentSkillRecord | None:
    """Look up a content skill by exact name, subject and grade."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM content_skills WHERE skill_name = ? AND subject = ? AND grade = ?",
            (skill_name, subject, grade),
        ).fetchone()
    return _content_skill_from_row(row) if row else None


def find_subject_skill(skill_name: str, subject: str, grade: str) -> SubjectSkillRecord | None:
    """Look up a subject skill by exact name, subject and grade."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM subject_skills WHERE skill_name = ? AND subject = ? AND grade = ?",
            (skill_name, subject, grade),
        ).fetchone()
    return _subject_skill_from_row(row) if row else None


def _subject_skill_from_row(row: sqlite3.Row) -> SubjectSkillRecord:
    return SubjectSkillRecord(
        id=row["id"],
        skill_name=row["skill_name"],
        subject=row["subject"],
        grade=row["grade"],
        skill_description=row["skill_description"],
    )


def list_content_skills() -> list[ContentSkillRecord]:
    """Every curriculum content skill."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM content_skills ORDER BY skill_name").fetchall()
    return [_content_skill_from_row(r) for r in rows]


def list_subject_skills() -> list[SubjectSkillRecord]:
    """Every curriculum subject skill."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM subject_skills ORDER BY skill_name").fetchall()
    return [_subject_skill_from_row(r) for r in rows]


# =============================================================================
# EXAMS AND ANSWER KEYS
# =============================================================================


def insert_exam(
    exam_id: str,
    title: str,
    class_id: str | None = None,
    total_points: float = 0,
) -> None:
    """Insert an exam.

    Raises:
        sqlite3.IntegrityError: If exam_id already exists
    """
    with get_db() as conn:
        conn.execute(
            "INSERT INTO exams (exam_id, title, class_id, total_points) VALUES (?, ?, ?, ?)",
            (exam_id, title, class_id, total_points),
        )
    logger.debug("exams.inserted", exam_id=exam_id)


def get_exam(exam_id: str) -> ExamRecord | None:
    """Get exam by id."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM exams WHERE exam_id = ?", (exam_id,)).fetchone()
    if row is None:
        return None
    return ExamRecord(
        exam_id=row["exam_id"],
        title=row["title"],
        class_id=row["class_id"],
        total_points=row["total_points"] or 0,
    )


def insert_answer_key(entry: AnswerKeyRecord) -> None:
    """Insert one answer-key entry."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO answer_keys (
                exam_id, question_number, question_text, question_type,
                correct_answer, points, options
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.exam_id,
                entry.question_number,
                entry.question_text,
                entry.question_type,
                entry.correct_answer,
                entry.points,
                json.dumps(entry.options) if entry.options is not None else None,
            ),
        )


def list_answer_keys(exam_id: str) -> list[AnswerKeyRecord]:
    """Answer keys of an exam ordered by question number."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM answer_keys WHERE exam_id = ? ORDER BY question_number",
            (exam_id,),
        ).fetchall()
    return [
        AnswerKeyRecord(
            exam_id=r["exam_id"],
            question_number=r["question_number"],
            question_text=r["question_text"],
            question_type=r["question_type"],
            correct_answer=r["correct_answer"],
            points=r["points"],
            options=json.loads(r["options"]) if r["options"] else None,
        )
        for r in rows
    ]


def get_historical_questions(class_id: str, limit: int = 10) -> list[HistoricalQuestion]:
    """Answer-key questions from the class's earlier exams.

    Lookup failures return an empty list; historical context is optional.
    """
    try:
        with get_db() as conn:
            rows = conn.execute(
                """
                SELECT ak.question_text, ak.question_type, ak.points, ak.options, e.title
                FROM answer_keys ak
                JOIN exams e ON e.exam_id = ak.exam_id
                WHERE e.class_id = ?
                ORDER BY e.created_at, ak.question_number
                LIMIT ?
                """,
                (class_id, limit),
            ).fetchall()
    except sqlite3.Error as e:
        logger.error("historical_questions_failed", class_id=class_id, error=str(e))
        return []

    return [
        HistoricalQuestion(
            question_text=r["question_text"],
            question_type=r["question_type"],
            points=r["points"],
            exam_title=r["title"] or "Unknown Exam",
            options=json.loads(r["options"]) if r["options"] else None,
        )
        for r in rows
    ]


# =============================================================================
# STUDENTS AND RESULTS
# =============================================================================


def find_or_create_student(student_name: str, email: str | None = None) -> StudentRecord:
    """Return the profile with this name, creating it if needed."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM student_profiles WHERE student_name = ?", (student_name,)
        ).fetchone()
        if row is not None:
            return StudentRecord(id=row["id"], student_name=row["student_name"], email=row["email"])

        student_id = _new_id()
        conn.execute(
            "INSERT INTO student_profiles (id, student_name, email) VALUES (?, ?, ?)",
            (student_id, student_name, email),
        )

    logger.info("student_profile_created", student_id=student_id)
    return StudentRecord(id=student_id, student_name=student_name, email=email)


def insert_test_result(
    student_id: str,
    exam_id: str,
    class_id: str | None,
    overall_score: float,
    total_points_earned: float,
    total_points_possible: float,
    ai_feedback: str | None,
    detailed_analysis: str | None,
) -> str:
    """Store a graded test and return its id."""
    result_id = _new_id()
    with get_db() as conn:
        _insert_test_result_row(
            conn,
            result_id,
            student_id,
            exam_id,
            class_id,
            overall_score,
            total_points_earned,
            total_points_possible,
            ai_feedback,
            detailed_analysis,
        )
    return result_id


def _insert_test_result_row(conn: sqlite3.Connection, *values: object) -> None:
    conn.execute(
        """
        INSERT INTO test_results (
            id, student_id, exam_id, class_id, overall_score,
            total_points_earned, total_points_possible, ai_feedback, detailed_analysis
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        values,
    )


_SCORE_TABLES = {
    "content": "content_skill_scores",
    "subject": "subject_skill_scores",
}


def _insert_score_rows(
    conn: sqlite3.Connection, test_result_id: str, kind: str, scores: list[SkillScore]
) -> None:
    table = _SCORE_TABLES[kind]
    conn.executemany(
        f"""
        INSERT INTO {table} (test_result_id, skill_name, score, points_earned, points_possible)
        VALUES (?, ?, ?, ?, ?)
        """,
        [
            (test_result_id, s.skill_name, s.score, s.points_earned, s.points_possible)
            for s in scores
        ],
    )


def insert_skill_scores(test_result_id: str, kind: str, scores: list[SkillScore]) -> None:
    """Store skill scores of a test result.

    Args:
        test_result_id: Parent test result
        kind: "content" or "subject"
        scores: Scores to insert
    """
    with get_db() as conn:
        _insert_score_rows(conn, test_result_id, kind, scores)


def save_graded_test(
    student_id: str,
    exam_id: str,
    class_id: str | None,
    overall_score: float,
    total_points_earned: float,
    total_points_possible: float,
    ai_feedback: str | None,
    detailed_analysis: str | None,
    content_scores: list[SkillScore],
    subject_scores: list[SkillScore],
) -> str:
    """Store a graded test and its skill scores in one transaction.

    Either the result and all of its scores are written, or nothing is.

    Returns:
        Id of the new test result
    """
    result_id = _new_id()
    with get_db() as conn:
        _insert_test_result_row(
            conn,
            result_id,
            student_id,
            exam_id,
            class_id,
            overall_score,
            total_points_earned,
            total_points_possible,
            ai_feedback,
            detailed_analysis,
        )
        _insert_score_rows(conn, result_id, "content", content_scores)
        _insert_score_rows(conn, result_id, "subject", subject_scores)

    logger.info(
        "test_result_saved",
        test_result_id=result_id,
        content_scores=len(content_scores),
        subject_scores=len(subject_scores),
    )
    return result_id


def _list_scores(conn: sqlite3.Connection, table: str, result_id: str) -> list[SkillScore]:
    rows = conn.execute(
        f"SELECT * FROM {table} WHERE test_result_id = ? ORDER BY id", (result_id,)
    ).fetchall()
    return [
        SkillScore(
            skill_name=r["skill_name"],
            score=r["score"],
            points_earned=r["points_earned"],
            points_possible=r["points_possible"],
        )
        for r in rows
    ]


def get_test_result(result_id: str) -> GradedTestRecord | None:
    """Get a stored test result with its skill scores."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM test_results WHERE id = ?", (result_id,)).fetchone()
        if row is None:
            return None
        content = _list_scores(conn, "content_skill_scores", result_id)
        subject = _list_scores(conn, "subject_skill_scores", result_id)

    return GradedTestRecord(
        id=row["id"],
        student_id=row["student_id"],
        exam_id=row["exam_id"],
        class_id=row["class_id"],
        overall_score=row["overall_score"],
        total_points_earned=row["total_points_earned"],
        total_points_possible=row["total_points_possible"],
        ai_feedback=row["ai_feedback"],
        detailed_analysis=row["detailed_analysis"],
        content_skill_scores=content,
        subject_skill_scores=subject,
    )


# =============================================================================
# PRACTICE TRACKING
# =============================================================================


def create_practice_session(
    student_id: str,
    skill_name: str,
    difficulty_level: str,
    question_count: int,
    student_name: str | None = None,
    current_skill_score: float | None = None,
    class_id: str | None = None,
    class_name: str | None = None,
    subject: str | None = None,
    grade: str | None = None,
) -> str:
    """Record a practice session and return its id."""
    session_id = _new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO student_practice_sessions (
                id, student_id, student_name, skill_name, current_skill_score,
                class_id, class_name, subject, grade, difficulty_level, question_count
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session_id,
                student_id,
                student_name,
                skill_name,
                current_skill_score,
                class_id,
                class_name,
                subject,
                grade,
                difficulty_level,
                question_count,
            ),
        )
    return session_id


def mark_exercise_generated(session_id: str) -> None:
    """Flag a practice session as having a generated exercise."""
    with get_db() as conn:
        conn.execute(
            "UPDATE student_practice_sessions SET exercise_generated = 1 WHERE id = ?",
            (session_id,),
        )


def is_exercise_generated(session_id: str) -> bool:
    """Whether the session's exercise has been generated."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT exercise_generated FROM student_practice_sessions WHERE id = ?",
            (session_id,),
        ).fetchone()
    return bool(row and row["exercise_generated"])


def record_practice(student_id: str, skill_name: str) -> PracticeAnalytics:
    """Increment the practice counter for a student and skill."""
    now = _now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO student_practice_analytics (
                student_id, skill_name, total_practice_sessions, last_practiced_at
            ) VALUES (?, ?, 1, ?)
            ON CONFLICT (student_id, skill_name) DO UPDATE SET
                total_practice_sessions = total_practice_sessions + 1,
                last_practiced_at = excluded.last_practiced_at
            """,
            (student_id, skill_name, now),
        )
        row = conn.execute(
            "SELECT * FROM student_practice_analytics WHERE student_id = ? AND skill_name = ?",
            (student_id, skill_name),
        ).fetchone()

    return PracticeAnalytics(
        student_id=row["student_id"],
        skill_name=row["skill_name"],
        total_practice_sessions=row["total_practice_sessions"],
        last_practiced_at=row["last_practiced_at"],
    )


# =============================================================================
# CONCEPT INDEX
# =============================================================================


def _concept_from_row(row: sqlite3.Row) -> ConceptRecord:
    return ConceptRecord(
        id=row["id"],
        concept_name=row["concept_name"],
        subject=row["subject"],
        grade=row["grade"],
        description=row["description"],
        keywords=json.loads(row["keywords"]) if row["keywords"] else [],
        related_skills=json.loads(row["related_skills"]) if row["related_skills"] else [],
        usage_count=row["usage_count"],
    )


def get_concept(concept_id: str) -> ConceptRecord | None:
    """Get a concept by id."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM concept_index WHERE id = ?", (concept_id,)).fetchone()
    return _concept_from_row(row) if row else None


def search_concepts(name_fragment: str, limit: int = 5) -> list[ConceptRecord]:
    """Concepts whose name contains the fragment (case-insensitive)."""
    escaped = name_fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM concept_index
            WHERE concept_name LIKE ? ESCAPE '\\'
            ORDER BY usage_count DESC, concept_name
            LIMIT ?
            """,
            (f"%{escaped}%", limit),
        ).fetchall()
    return [_concept_from_row(r) for r in rows]


def insert_concept(
    concept_name: str,
    subject: str | None = None,
    grade: str | None = None,
    description: str | None = None,
    keywords: list[str] | None = None,
    related_skills: list[str] | None = None,
) -> str:
    """Add a concept to the index and return its id."""
    concept_id = _new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO concept_index (
                id, concept_name, subject, grade, description, keywords, related_skills
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                concept_id,
                concept_name,
                subject,
                grade,
                description,
                json.dumps(keywords or []),
                json.dumps(related_skills or []),
            ),
        )
    logger.info("concept_created", concept_id=concept_id, concept_name=concept_name)
    return concept_id


def increment_concept_usage(concept_id: str) -> None:
    """Count another student mistake against an existing concept."""
    with get_db() as conn:
        conn.execute(
            "UPDATE concept_index SET usage_count = usage_count + 1 WHERE id = ?",
            (concept_id,),
        )


# =============================================================================
# EXAM SKILL MAPPING
# =============================================================================


def get_exam_skill_analysis(exam_id: str) -> ExamSkillAnalysisRecord | None:
    """Latest skill mapping run of an exam."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM exam_skill_analysis WHERE exam_id = ?", (exam_id,)
        ).fetchone()
    if row is None:
        return None
    return ExamSkillAnalysisRecord(
        exam_id=row["exam_id"],
        analysis_status=row["analysis_status"],
        total_questions=row["total_questions"],
        mapped_questions=row["mapped_questions"],
        content_skills_found=row["content_skills_found"],
        subject_skills_found=row["subject_skills_found"],
        ai_analysis_data=json.loads(row["ai_analysis_data"]) if row["ai_analysis_data"] else None,
        error_message=row["error_message"],
        analysis_started_at=row["analysis_started_at"],
        analysis_completed_at=row["analysis_completed_at"],
    )


def start_exam_skill_analysis(exam_id: str, total_questions: int) -> None:
    """Create or reset the analysis record as in progress."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO exam_skill_analysis (
                exam_id, analysis_status, total_questions, analysis_started_at
            ) VALUES (?, 'in_progress', ?, ?)
            ON CONFLICT (exam_id) DO UPDATE SET
                analysis_status = 'in_progress',
                total_questions = excluded.total_questions,
                analysis_started_at = excluded.analysis_started_at,
                error_message = NULL
            """,
            (exam_id, total_questions, _now()),
        )


def complete_exam_skill_analysis(
    exam_id: str,
    mappings: list[ExamSkillMapping],
    mapped_questions: int,
    ai_analysis_data: dict[str, Any],
) -> None:
    """Replace the exam's mappings and mark the analysis completed.

    Mappings and status are written in one transaction.
    """
    content_found = sum(1 for m in mappings if m.skill_type == "content")
    with get_db() as conn:
        conn.execute("DELETE FROM exam_skill_mappings WHERE exam_id = ?", (exam_id,))
        conn.executemany(
            """
            INSERT INTO exam_skill_mappings (
                exam_id, question_number, skill_type, skill_id, skill_name, skill_weight, confidence
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    exam_id,
                    m.question_number,
                    m.skill_type,
                    m.skill_id,
                    m.skill_name,
                    m.skill_weight,
                    m.confidence,
                )
                for m in mappings
            ],
        )
        conn.execute(
            """
            UPDATE exam_skill_analysis SET
                analysis_status = 'completed',
                mapped_questions = ?,
                content_skills_found = ?,
                subject_skills_found = ?,
                ai_analysis_data = ?,
                analysis_completed_at = ?
            WHERE exam_id = ?
            """,
            (
                mapped_questions,
                content_found,
                len(mappings) - content_found,
                json.dumps(ai_analysis_data),
                _now(),
                exam_id,
            ),
        )


def fail_exam_skill_analysis(exam_id: str, error_message: str) -> None:
    """Mark the analysis failed with the error that stopped it."""
    with get_db() as conn:
        conn.execute(
            """
            UPDATE exam_skill_analysis
            SET analysis_status = 'failed', error_message = ?
            WHERE exam_id = ?
            """,
            (error_message, exam_id),
        )


def list_exam_skill_mappings(exam_id: str) -> list[ExamSkillMapping]:
    """Stored question-to-skill links of an exam, by question number."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM exam_skill_mappings
            WHERE exam_id = ?
            ORDER BY question_number, skill_type, id
            """,
            (exam_id,),
        ).fetchall()
    return [
        ExamSkillMapping(
            question_number=r["question_number"],
            skill_type=r["skill_type"],
            skill_name=r["skill_name"],
            skill_id=r["skill_id"],
            skill_weight=r["skill_weight"],
            confidence=r["confidence"],
        )
        for r in rows
    ]
