"""Unit tests for the click CLI."""

import json
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from clinibridge.cli.cli import main
from clinibridge.models.model_chat import ChatResult
from clinibridge.models.model_clinical_trials import TrialSearchFailed, TrialSearchOk
from clinibridge.services.eligibility import build_fallback
from clinibridge.services.featured_trials import FALLBACK_TRIALS
from tests.factories import make_summary


def test_search_prints_numbered_list():
    trials = [make_summary("NCT00000001"), make_summary("NCT00000002")]
    with (
        patch(
            "clinibridge.cli.cli.search_trials",
            new=AsyncMock(return_value=TrialSearchOk(trials=trials)),
        ),
        patch("clinibridge.cli.cli.score_trials", new=AsyncMock()) as mock_score,
    ):
        result = CliRunner().invoke(
            main, ["search", "-c", "asthma", "-a", "30", "--no-score"]
        )

    assert result.exit_code == 0, result.output
    assert "Found 2 recruiting trials for: asthma" in result.output
    assert "1. NCT00000001" in result.output
    assert "2. NCT00000002" in result.output
    mock_score.assert_not_awaited()


def test_search_writes_output_file(tmp_path):
    trials = [make_summary("NCT00000001")]
    scored = [
        trials[0].model_copy(
            update={"match_score": 60, "match_label": "Possible Match"}
        )
    ]
    out = tmp_path / "results.json"

    with (
        patch(
            "clinibridge.cli.cli.search_trials",
            new=AsyncMock(return_value=TrialSearchOk(trials=trials)),
        ),
        patch("clinibridge.cli.cli.score_trials", new=AsyncMock(return_value=scored)),
    ):
        result = CliRunner().invoke(
            main, ["search", "-c", "asthma", "-a", "30", "-o", str(out)]
        )

    assert result.exit_code == 0, result.output
    assert "[Possible Match 60]" in result.output
    assert json.loads(out.read_text())[0]["match_label"] == "Possible Match"


def test_search_error_exits_nonzero():
    with patch(
        "clinibridge.cli.cli.search_trials",
        new=AsyncMock(return_value=TrialSearchFailed(error="The search timed out.")),
    ):
        result = CliRunner().invoke(main, ["search", "-c", "asthma", "-a", "30"])

    assert result.exit_code == 1
    assert "The search timed out." in result.output


def test_eligibility_prints_json():
    breakdown = build_fallback("NCT01234567", None)
    with patch(
        "clinibridge.cli.cli.EligibilityExplainer.get_breakdown",
        new=AsyncMock(return_value=breakdown),
    ):
        result = CliRunner().invoke(
            main, ["eligibility", "NCT01234567", "-c", "asthma", "-a", "30"]
        )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["trial_id"] == "NCT01234567"


def test_chat_keeps_history_and_prints_trials(sample_profile):
    trials = [
        make_summary("NCT00000001", match_score=85, match_label="Strong Match")
    ]
    replies = [
        ChatResult(reply="How old is the patient?"),
        ChatResult(
            reply="One trial looks promising.", trials=trials, profile=sample_profile
        ),
    ]
    seen: list[list[str]] = []

    async def fake_chat(history):
        seen.append([m.content for m in history])
        return replies[len(seen) - 1]

    with patch("clinibridge.cli.cli.run_chat", new=fake_chat):
        result = CliRunner().invoke(main, ["chat"], input="asthma\n30, Denver\n\n")

    assert result.exit_code == 0, result.output
    assert "clinibridge: How old is the patient?" in result.output
    assert "1. NCT00000001 Trial NCT00000001 [Strong Match 85]" in result.output
    assert seen[1] == ["asthma", "How old is the patient?", "30, Denver"]


def test_featured_prints_cards():
    with patch(
        "clinibridge.cli.cli.get_featured_trials",
        new=AsyncMock(return_value=list(FALLBACK_TRIALS)),
    ) as mock_featured:
        result = CliRunner().invoke(main, ["featured", "--category", "neurology"])

    assert result.exit_code == 0, result.output
    assert "NCT06198765 Antisense Oligonucleotide for Huntington Disease" in result.output
    mock_featured.assert_awaited_once_with("neurology")
