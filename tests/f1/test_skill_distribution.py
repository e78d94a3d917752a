"""Tests for skill distribution rebalancing."""

import pytest

from gradeflow.core.skill_distribution import (
    SkillRequest,
    distribution_from_scores,
    rebalance_distribution,
)


def _skills(*items):
    return [SkillRequest(skill_name=n, score=s, requested_questions=q) for n, s, q in items]


class TestRebalanceExact:
    """Distribution already matching the target."""

    def test_unchanged(self):
        """Counts are kept when they already sum to the target."""
        result = rebalance_distribution(_skills(("Fractions", 55, 3), ("Decimals", 70, 2)), 5)

        assert result.as_mapping() == {"Fractions": 3, "Decimals": 2}
        assert result.achieved_total == 5
        assert result.adjusted is False


class TestRebalanceShortfall:
    """Requested total below target."""

    def test_shortfall_goes_to_lowest_score(self):
        """All missing questions go to the weakest skill."""
        result = rebalance_distribution(
            _skills(("Fractions", 60, 1), ("Decimals", 40, 1), ("Ratios", 80, 1)), 6
        )

        assert result.as_mapping() == {"Fractions": 1, "Decimals": 4, "Ratios": 1}
        assert result.achieved_total == 6
        assert result.adjusted is True

    def test_tie_on_lowest_score_uses_first(self):
        """Equal lowest scores: the first skill in input order gets the shortfall."""
        result = rebalance_distribution(_skills(("A", 50, 1), ("B", 50, 1)), 4)

        assert result.as_mapping() == {"A": 3, "B": 1}

    def test_zero_requests_raised_to_one(self):
        """Requested counts below one are raised to one first."""
        result = rebalance_distribution(_skills(("A", 30, 0), ("B", 90, 0)), 2)

        assert result.as_mapping() == {"A": 1, "B": 1}


class TestRebalanceSurplus:
    """Requested total above target."""

    def test_surplus_removed_from_highest_score_first(self):
        """Questions come off the strongest skill before others."""
        result = rebalance_distribution(
            _skills(("Fractions", 40, 3), ("Decimals", 90, 3), ("Ratios", 70, 3)), 6
        )

        assert result.as_mapping() == {"Fractions": 3, "Decimals": 1, "Ratios": 2}
        assert result.achieved_total == 6

    def test_surplus_spills_to_next_skill(self):
        """When the strongest skill reaches one, removal continues with the next."""
        result = rebalance_distribution(_skills(("A", 90, 2), ("B", 80, 4), ("C", 10, 4)), 4)

        assert result.as_mapping() == {"A": 1, "B": 1, "C": 2}

    def test_never_below_one(self):
        """Every skill keeps at least one question."""
        result = rebalance_distribution(_skills(("A", 10, 5), ("B", 20, 5), ("C", 30, 5)), 3)

        assert all(a.questions >= 1 for a in result.allocations)
        assert result.achieved_total == 3

    def test_target_below_skill_count(self):
        """Minimum of one per skill wins over a too-small target."""
        result = rebalance_distribution(_skills(("A", 10, 2), ("B", 20, 2), ("C", 30, 2)), 2)

        assert result.as_mapping() == {"A": 1, "B": 1, "C": 1}
        assert result.achieved_total == 3
        assert result.target_total == 2


class TestKnownSkills:
    """Matching against the class's skill catalog."""

    def test_case_and_whitespace_insensitive(self):
        """Names match ignoring case and extra spaces."""
        result = rebalance_distribution(
            _skills(("solving  Equations", 50, 2), ("Poetry", 60, 2)),
            4,
            known_skills=["Solving Equations"],
        )

        flags = {a.skill_name: a.is_known_skill for a in result.allocations}
        assert flags == {"solving  Equations": True, "Poetry": False}
        assert result.unknown_skills == ["Poetry"]

    def test_no_catalog_means_unknown(self):
        """Without a catalog, is_known_skill is None."""
        result = rebalance_distribution(_skills(("A", 50, 1)), 1)

        assert result.allocations[0].is_known_skill is None
        assert result.unknown_skills == []


class TestValidation:
    """Invalid input."""

    def test_empty_skills(self):
        """No skills raises ValueError."""
        with pytest.raises(ValueError):
            rebalance_distribution([], 5)

    def test_non_positive_target(self):
        """Target below one raises ValueError."""
        with pytest.raises(ValueError):
            rebalance_distribution(_skills(("A", 50, 1)), 0)


class TestSkillRequestFromDict:
    """Client payload parsing."""

    def test_questions_key(self):
        """'questions' is accepted as the requested count."""
        req = SkillRequest.from_dict({"skill_name": " Ratios ", "score": 72.5, "questions": 3})

        assert req.skill_name == "Ratios"
        assert req.score == 72.5
        assert req.requested_questions == 3


class TestDistributionFromScores:
    """Even split with remainder to weakest skills."""

    def test_remainder_to_weakest(self):
        """7 over 3 skills: the weakest gets the extra question."""
        result = distribution_from_scores([("A", 80), ("B", 30), ("C", 60)], 7)

        assert result.as_mapping() == {"A": 2, "B": 3, "C": 2}
        assert result.achieved_total == 7
