"""Tests for POST /api/skill-distribution."""

from gradeflow.db import classroom_repository as repo


class TestSkillDistributionEndpoint:
    """Tests for distribution rebalancing over HTTP."""

    def test_rebalances_to_target(self, client):
        body = {
            "skills": [
                {"skillName": "Fractions", "score": 45, "questions": 2},
                {"skillName": "Decimals", "score": 70, "questions": 2},
            ],
            "targetTotal": 6,
        }

        response = client.post("/api/skill-distribution", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["targetTotal"] == 6
        assert data["achievedTotal"] == 6
        assert data["adjusted"] is True
        assert [a["questions"] for a in data["allocations"]] == [4, 2]
        assert data["allocations"][0]["requestedQuestions"] == 2
        assert data["allocations"][0]["isKnownSkill"] is None

    def test_marks_unknown_skills_for_class(self, client):
        class_id = repo.insert_class("Math 5A", "Math", "5th Grade")
        skill_id = repo.insert_content_skill("Fractions", "Math", "5th Grade")
        repo.link_content_skill(class_id, skill_id)
        body = {
            "skills": [
                {"skillName": "Fractions", "score": 45, "questions": 1},
                {"skillName": "Poetry", "score": 70, "questions": 1},
            ],
            "targetTotal": 2,
            "classId": class_id,
        }

        data = client.post("/api/skill-distribution", json=body).json()

        assert [a["isKnownSkill"] for a in data["allocations"]] == [True, False]
        assert data["unknownSkills"] == ["Poetry"]
        assert data["adjusted"] is False

    def test_target_below_one_per_skill(self, client):
        body = {
            "skills": [{"skillName": n, "score": 50, "questions": 1} for n in ("A", "B", "C")],
            "targetTotal": 2,
        }

        data = client.post("/api/skill-distribution", json=body).json()

        assert data["achievedTotal"] == 3
        assert data["targetTotal"] == 2

    def test_empty_skills_rejected(self, client):
        response = client.post("/api/skill-distribution", json={"skills": [], "targetTotal": 3})

        assert response.status_code == 400
