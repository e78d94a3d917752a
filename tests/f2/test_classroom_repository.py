"""Tests for database schema and classroom repository functions."""

import sqlite3

import pytest

from gradeflow.db import classroom_repository as repo
from gradeflow.db.classroom_repository import ExamSkillMapping, SkillScore
from gradeflow.db.database import get_db, get_db_path, init_db


class TestDatabase:
    """Tests for schema creation."""

    def test_init_db_creates_tables(self, temp_db):
        assert temp_db.exists()
        assert get_db_path() == temp_db
        with get_db() as conn:
            tables = {
                r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        assert {"classes", "exams", "answer_keys", "test_results", "student_practice_sessions"} <= tables

    def test_init_db_is_idempotent(self, temp_db):
        init_db(temp_db)
        init_db(temp_db)

    def test_rolls_back_on_error(self, temp_db):
        with pytest.raises(RuntimeError):
            with get_db() as conn:
                conn.execute(
                    "INSERT INTO classes (id, name, subject, grade) VALUES ('c1', 'A', 'Math', '5th Grade')"
                )
                raise RuntimeError("boom")

        assert repo.get_class("c1") is None


class TestClassesAndSkills:
    """Tests for class and curriculum lookups."""

    def test_get_class(self, seeded_classroom):
        cls = repo.get_class(seeded_classroom["class_id"])

        assert cls.name == "Math 5A"
        assert cls.teacher == "Ms. Rivera"

    def test_linked_content_skills(self, seeded_classroom):
        skills = repo.list_class_content_skills(seeded_classroom["class_id"])
        assert [s.skill_name for s in skills] == ["Adding Fractions", "Decimal Place Value"]

    def test_known_skill_names_include_subject_skills(self, seeded_classroom):
        names = repo.list_known_skill_names(seeded_classroom["class_id"])
        assert names == ["Adding Fractions", "Decimal Place Value", "Problem Solving"]

    def test_known_skill_names_unknown_class(self, temp_db):
        assert repo.list_known_skill_names("missing") == []

    def test_duplicate_content_skill_rejected(self, seeded_classroom):
        with pytest.raises(sqlite3.IntegrityError):
            repo.insert_content_skill("Adding Fractions", "Math", "5th Grade")


class TestExams:
    """Tests for exams, answer keys and historical questions."""

    def test_get_exam(self, seeded_classroom):
        exam = repo.get_exam("MATH101")

        assert exam.title == "Unit 1 Test"
        assert exam.total_points == 4

    def test_missing_exam(self, temp_db):
        assert repo.get_exam("NOPE") is None

    def test_duplicate_exam_id(self, seeded_classroom):
        with pytest.raises(sqlite3.IntegrityError):
            repo.insert_exam("MATH101", "Again")

    def test_answer_keys_ordered(self, seeded_classroom):
        keys = repo.list_answer_keys("MATH101")

        assert [k.question_number for k in keys] == [1, 2]
        assert keys[0].options == ["1/3", "2/3", "2/6", "1"]
        assert keys[1].options is None

    def test_historical_questions(self, seeded_classroom):
        questions = repo.get_historical_questions(seeded_classroom["class_id"])

        assert len(questions) == 2
        assert questions[0].exam_title == "Unit 1 Test"
        assert questions[0].question_type == "multiple-choice"

    def test_historical_questions_limit(self, seeded_classroom):
        assert len(repo.get_historical_questions(seeded_classroom["class_id"], limit=1)) == 1

    def test_historical_questions_other_class(self, seeded_classroom):
        assert repo.get_historical_questions("other-class") == []


class TestResults:
    """Tests for student profiles and graded results."""

    def test_find_or_create_student(self, temp_db):
        first = repo.find_or_create_student("Ana", "ana@example.com")
        second = repo.find_or_create_student("Ana")

        assert first.id == second.id
        assert second.email == "ana@example.com"

    def test_test_result_with_scores(self, seeded_classroom):
        student = repo.find_or_create_student("Ana")
        result_id = repo.insert_test_result(
            student_id=student.id,
            exam_id="MATH101",
            class_id=seeded_classroom["class_id"],
            overall_score=50,
            total_points_earned=2,
            total_points_possible=4,
            ai_feedback="Keep going",
            detailed_analysis="Q1 correct",
        )
        repo.insert_skill_scores(result_id, "content", [SkillScore("Adding Fractions", 100, 2, 2)])
        repo.insert_skill_scores(result_id, "subject", [SkillScore("Problem Solving", 50, 2, 4)])

        stored = repo.get_test_result(result_id)

        assert stored.overall_score == 50
        assert stored.content_skill_scores == [SkillScore("Adding Fractions", 100, 2, 2)]
        assert stored.subject_skill_scores[0].skill_name == "Problem Solving"

    def test_missing_result(self, temp_db):
        assert repo.get_test_result("missing") is None

    def test_save_graded_test(self, seeded_classroom):
        student = repo.find_or_create_student("Ben")

        result_id = repo.save_graded_test(
            student_id=student.id,
            exam_id="MATH101",
            class_id=seeded_classroom["class_id"],
            overall_score=75,
            total_points_earned=3,
            total_points_possible=4,
            ai_feedback="Nice",
            detailed_analysis="Q1 correct",
            content_scores=[SkillScore("Adding Fractions", 100, 2, 2)],
            subject_scores=[],
        )

        stored = repo.get_test_result(result_id)
        assert stored.overall_score == 75
        assert stored.content_skill_scores == [SkillScore("Adding Fractions", 100, 2, 2)]
        assert stored.subject_skill_scores == []

    def test_save_graded_test_rolls_back(self, seeded_classroom):
        """A rejected score row discards the whole result."""
        student = repo.find_or_create_student("Ben")

        with pytest.raises(sqlite3.IntegrityError):
            repo.save_graded_test(
                student_id=student.id,
                exam_id="MATH101",
                class_id=None,
                overall_score=0,
                total_points_earned=0,
                total_points_possible=4,
                ai_feedback=None,
                detailed_analysis=None,
                content_scores=[],
                subject_scores=[SkillScore(None)],
            )

        with get_db() as conn:
            assert conn.execute("SELECT COUNT(*) FROM test_results").fetchone()[0] == 0


class TestPracticeTracking:
    """Tests for practice sessions and analytics."""

    def test_session_lifecycle(self, temp_db):
        session_id = repo.create_practice_session("s1", "Adding Fractions", "review", 4)

        assert repo.is_exercise_generated(session_id) is False
        repo.mark_exercise_generated(session_id)
        assert repo.is_exercise_generated(session_id) is True

    def test_record_practice_increments(self, temp_db):
        repo.record_practice("s1", "Adding Fractions")
        analytics = repo.record_practice("s1", "Adding Fractions")
        other = repo.record_practice("s1", "Decimals")

        assert analytics.total_practice_sessions == 2
        assert analytics.last_practiced_at is not None
        assert other.total_practice_sessions == 1


class TestConceptIndex:
    """Tests for the missed-concept index."""

    def test_insert_and_get(self, temp_db):
        concept_id = repo.insert_concept(
            "Combining like terms", subject="Math", keywords=["like terms"], related_skills=["Algebra"]
        )

        concept = repo.get_concept(concept_id)

        assert concept.concept_name == "Combining like terms"
        assert concept.keywords == ["like terms"]
        assert concept.usage_count == 1

    def test_search_is_case_insensitive_substring(self, temp_db):
        repo.insert_concept("Combining like terms")
        repo.insert_concept("Place value")

        names = [c.concept_name for c in repo.search_concepts("LIKE TERMS")]

        assert names == ["Combining like terms"]

    def test_search_escapes_wildcards(self, temp_db):
        repo.insert_concept("Percent of a number")

        assert repo.search_concepts("%") == []
        assert repo.search_concepts("_") == []

    def test_search_orders_by_usage(self, temp_db):
        first = repo.insert_concept("Fractions basics")
        second = repo.insert_concept("Fractions on a number line")
        repo.increment_concept_usage(second)

        assert [c.id for c in repo.search_concepts("Fractions")] == [second, first]


class TestExamSkillAnalysis:
    """Tests for exam skill mapping storage."""

    def test_complete_replaces_mappings(self, seeded_classroom):
        repo.start_exam_skill_analysis("MATH101", 2)
        repo.complete_exam_skill_analysis(
            "MATH101",
            [ExamSkillMapping(1, "content", "Adding Fractions"), ExamSkillMapping(1, "subject", "Problem Solving")],
            1,
            {"mappings": []},
        )
        repo.start_exam_skill_analysis("MATH101", 2)
        repo.complete_exam_skill_analysis(
            "MATH101", [ExamSkillMapping(2, "content", "Decimal Place Value", skill_weight=0.5)], 1, {}
        )

        mappings = repo.list_exam_skill_mappings("MATH101")
        analysis = repo.get_exam_skill_analysis("MATH101")

        assert [(m.question_number, m.skill_name, m.skill_weight) for m in mappings] == [
            (2, "Decimal Place Value", 0.5)
        ]
        assert analysis.analysis_status == "completed"
        assert analysis.content_skills_found == 1
        assert analysis.subject_skills_found == 0
        assert analysis.analysis_completed_at is not None

    def test_complete_is_atomic(self, seeded_classroom):
        repo.start_exam_skill_analysis("MATH101", 2)
        repo.complete_exam_skill_analysis("MATH101", [ExamSkillMapping(1, "content", "Adding Fractions")], 1, {})

        with pytest.raises(sqlite3.IntegrityError):
            repo.complete_exam_skill_analysis("MATH101", [ExamSkillMapping(1, "other", "Bad type")], 1, {})

        assert len(repo.list_exam_skill_mappings("MATH101")) == 1

    def test_fail_records_error(self, seeded_classroom):
        repo.start_exam_skill_analysis("MATH101", 2)
        repo.fail_exam_skill_analysis("MATH101", "AI returned invalid skill mapping format")

        analysis = repo.get_exam_skill_analysis("MATH101")

        assert analysis.analysis_status == "failed"
        assert analysis.total_questions == 2

    def test_all_skills_listed(self, seeded_classroom):
        assert [s.skill_name for s in repo.list_content_skills()] == [
            "Adding Fractions",
            "Decimal Place Value",
            "Unlinked Skill",
        ]
        assert [s.skill_name for s in repo.list_subject_skills()] == ["Problem Solving"]
