"""Tests for uiqa.qa.matcher."""

import pytest

from uiqa.ai.base import ImageInput
from uiqa.ai.schemas import MatchResponse
from uiqa.exceptions import AIProviderError
from uiqa.qa.matcher import match_screenshots, order_fallback, sanitize_matches

from conftest import ScriptedCollaborator


def images(n):
    return [ImageInput(bytes([i])) for i in range(n)]


def assert_partial_bijection(result, n_screens, n_designs):
    s_idx = [m.screenshot_index for m in result.matches]
    d_idx = [m.design_index for m in result.matches]
    assert len(set(s_idx)) == len(s_idx)
    assert len(set(d_idx)) == len(d_idx)
    assert sorted(s_idx + result.unmatched_screenshots) == list(range(n_screens))
    assert sorted(d_idx + result.unmatched_designs) == list(range(n_designs))
    assert all(0 <= m.confidence <= 100 for m in result.matches)


# ---------------------------------------------------------------------------
# Tests: degenerate inputs (no collaborator call)
# ---------------------------------------------------------------------------


class TestDegenerateInputs:

    @pytest.mark.asyncio
    async def test_one_to_one(self):
        collab = ScriptedCollaborator()
        result = await match_screenshots(collab, images(1), images(1))

        assert len(result.matches) == 1
        match = result.matches[0]
        assert (match.screenshot_index, match.design_index, match.confidence) == (0, 0, 100)
        assert match.reasoning == "Single screenshot matched to single design"
        assert collab.calls == []

    @pytest.mark.asyncio
    async def test_one_screenshot_many_designs(self):
        collab = ScriptedCollaborator()
        result = await match_screenshots(collab, images(1), images(3))

        assert [(m.screenshot_index, m.design_index) for m in result.matches] == [(0, 0)]
        assert result.matches[0].confidence == 100
        assert result.unmatched_designs == [1, 2]
        assert collab.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("n_screens,n_designs", [(0, 0), (0, 3), (2, 0)])
    async def test_empty_side(self, n_screens, n_designs):
        collab = ScriptedCollaborator()
        result = await match_screenshots(collab, images(n_screens), images(n_designs))

        assert result.matches == []
        assert result.unmatched_screenshots == list(range(n_screens))
        assert result.unmatched_designs == list(range(n_designs))
        assert collab.calls == []


# ---------------------------------------------------------------------------
# Tests: collaborator proposals
# ---------------------------------------------------------------------------


class TestProposals:

    @pytest.mark.asyncio
    async def test_valid_proposal_kept(self):
        collab = ScriptedCollaborator([{
            "matches": [
                {"screenshotIndex": 0, "figmaIndex": 2, "confidence": 91, "reasoning": "Same header"},
                {"screenshotIndex": 1, "figmaIndex": 0, "confidence": 80},
            ],
        }])
        result = await match_screenshots(collab, images(2), images(3))

        assert [(m.screenshot_index, m.design_index, m.confidence) for m in result.matches] == [
            (0, 2, 91), (1, 0, 80),
        ]
        assert result.matches[0].reasoning == "Same header"
        assert result.matches[1].reasoning == "Matched by AI analysis"
        assert result.unmatched_designs == [1]
        assert_partial_bijection(result, 2, 3)

    @pytest.mark.asyncio
    async def test_duplicates_and_out_of_range_dropped(self):
        collab = ScriptedCollaborator([{
            "matches": [
                {"screenshotIndex": 0, "figmaIndex": 0, "confidence": 70},
                {"screenshotIndex": 0, "figmaIndex": 1, "confidence": 95},
                {"screenshotIndex": 1, "figmaIndex": 0, "confidence": 95},
                {"screenshotIndex": 2, "figmaIndex": 9},
                {"screenshotIndex": -1, "figmaIndex": 1},
                {"screenshotIndex": "x", "figmaIndex": 1},
                {"screenshotIndex": 2, "designIndex": 1, "confidence": 60},
            ],
        }])
        result = await match_screenshots(collab, images(3), images(2))

        assert [(m.screenshot_index, m.design_index) for m in result.matches] == [(0, 0), (2, 1)]
        assert result.unmatched_screenshots == [1]
        assert_partial_bijection(result, 3, 2)

    def test_confidence_normalisation(self):
        response = MatchResponse(matches=[
            {"screenshotIndex": 0, "figmaIndex": 0, "confidence": 140},
            {"screenshotIndex": 1, "figmaIndex": 1, "confidence": -5},
            {"screenshotIndex": 2, "figmaIndex": 2, "confidence": "high"},
            {"screenshotIndex": 3, "figmaIndex": 3, "confidence": 0},
            {"screenshotIndex": 4, "figmaIndex": 4, "confidence": float("nan")},
            {"screenshotIndex": 5, "figmaIndex": 5},
        ])
        result = sanitize_matches(response, 6, 6)
        assert [m.confidence for m in result.matches] == [100, 0, 50, 50, 50, 50]

    def test_confidence_halves_round_up(self):
        response = MatchResponse(matches=[
            {"screenshotIndex": 0, "figmaIndex": 0, "confidence": 12.5},
            {"screenshotIndex": 1, "figmaIndex": 1, "confidence": 84.5},
            {"screenshotIndex": 2, "figmaIndex": 2, "confidence": 84.49},
        ])
        result = sanitize_matches(response, 3, 3)
        assert [m.confidence for m in result.matches] == [13, 85, 84]

    def test_integral_float_indices_accepted(self):
        response = MatchResponse(matches=[
            {"screenshotIndex": 1.0, "figmaIndex": 0, "confidence": 77},
            {"screenshotIndex": 0.5, "figmaIndex": 1},
            {"screenshotIndex": True, "figmaIndex": 1},
        ])
        result = sanitize_matches(response, 2, 2)
        assert [(m.screenshot_index, m.design_index) for m in result.matches] == [(1, 0)]


# ---------------------------------------------------------------------------
# Tests: order fallback
# ---------------------------------------------------------------------------


class TestOrderFallback:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        AIProviderError("overloaded", status_code=529),
        AIProviderError("denied", status_code=403),
        "I think they all look alike.",
        {"matches": [{"screenshotIndex": 7, "figmaIndex": 7}]},
        {"matches": []},
    ])
    async def test_falls_back(self, reply):
        collab = ScriptedCollaborator([reply])
        result = await match_screenshots(collab, images(3), images(2))

        assert [(m.screenshot_index, m.design_index) for m in result.matches] == [(0, 0), (1, 1)]
        assert all(m.confidence == 50 for m in result.matches)
        assert all(m.reasoning == "Fallback: matched by upload order" for m in result.matches)
        assert result.unmatched_screenshots == [2]
        assert result.unmatched_designs == []
        assert len(collab.calls) == 1

    def test_more_designs_than_screenshots(self):
        result = order_fallback(2, 4)
        assert result.unmatched_designs == [2, 3]
        assert_partial_bijection(result, 2, 4)
