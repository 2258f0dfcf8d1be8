"""Tests for the session composer agent.

Tests verify that:
- descriptions are capped at 40 characters on a token boundary
- unusable entries are dropped, not fatal, while one session survives
- zone percentages and RPE are coerced
"""

import pytest

from coachweek.agents.errors import SchemaError
from coachweek.agents.session_composer import (
    MAX_DESCRIPTION_LENGTH,
    SessionComposerAgent,
    SessionComposerInput,
    coerce_session_type,
    parse_zone_percentages,
    shorten_description,
)
from coachweek.planning.schemas import SessionType


@pytest.fixture
def composer_input(generation_request, context_analysis, week_structure) -> SessionComposerInput:
    return SessionComposerInput(request=generation_request, analysis=context_analysis, structure=week_structure)


def _parse(payload, composer_input):
    return SessionComposerAgent(gateway=None).parse_response(payload, composer_input)


def test_parse_full_week(composer_input, sessions_payload):
    sessions = _parse(sessions_payload, composer_input)

    assert [s.day for s in sessions] == list(range(7))
    assert sessions[1].short_description == "VMA > 10 x 400 r1'"
    assert sessions[1].session_type == SessionType.VMA
    assert sessions[1].rpe_target == 7
    assert sessions[4].session_type == SessionType.RECUPERATION


def test_long_description_is_truncated(composer_input):
    long_text = "JOG 16 km en endurance fondamentale + 6 x 100m foulées bondissantes et gammes"
    sessions = _parse({"sessions": [{"day": 2, "sessionDescription": long_text}]}, composer_input)

    description = sessions[0].short_description
    assert len(description) <= MAX_DESCRIPTION_LENGTH
    assert long_text.startswith(description)
    assert not description.endswith(("+", " "))


def test_shorten_description_collapses_whitespace():
    assert shorten_description("  SL   18K \n") == "SL 18K"


def test_shorten_description_without_spaces_cuts_hard():
    assert shorten_description("X" * 60) == "X" * MAX_DESCRIPTION_LENGTH


def test_invalid_and_duplicate_days_are_dropped(composer_input):
    payload = {
        "sessions": [
            {"day": 9, "sessionDescription": "JOG 1H"},
            {"day": 3, "sessionDescription": "SV1 > 3 x 3K r3", "sessionType": "seuil"},
            {"day": 3, "sessionDescription": "JOG 45'"},
            {"day": 0, "sessionDescription": "MUSCU"},
        ]
    }
    sessions = _parse(payload, composer_input)

    assert [s.day for s in sessions] == [0, 3]
    assert sessions[1].session_type == SessionType.SEUIL


def test_missing_description_is_schema_error(composer_input):
    with pytest.raises(SchemaError, match="no description"):
        _parse({"sessions": [{"day": 1, "sessionDescription": "  "}]}, composer_input)


def test_nothing_usable_is_schema_error(composer_input):
    with pytest.raises(SchemaError):
        _parse({"sessions": [{"day": -1, "sessionDescription": "JOG"}]}, composer_input)
    with pytest.raises(SchemaError):
        _parse({"plan": []}, composer_input)


def test_bare_list_payload_is_accepted(composer_input):
    sessions = _parse([{"day": 6, "description": "SL 18K"}], composer_input)
    assert sessions[0].short_description == "SL 18K"


def test_rpe_is_clamped(composer_input):
    sessions = _parse({"sessions": [{"day": 1, "sessionDescription": "VMA", "rpeTarget": 14}]}, composer_input)
    assert sessions[0].rpe_target == 10


def test_zone_percentages_aliases():
    zones = parse_zone_percentages({"Zone1": 80, "z2": 10, "vitesse": 10})
    assert (zones.z1, zones.z2, zones.z3, zones.speed) == (80, 10, 0, 10)


def test_unknown_session_type_is_autre():
    assert coerce_session_type("Natation") == SessionType.AUTRE
    assert coerce_session_type("fractionné") == SessionType.FRACTIONNE


def test_prompt_contains_structure_and_notation(composer_input):
    prompt = SessionComposerAgent(gateway=None).build_prompt(composer_input)
    assert "Mardi (1): VMA (high)" in prompt
    assert "SÉANCES CLÉS: jours 1 et 3" in prompt
    assert "CONTRAINTES UTILISATEUR (PRIORITAIRE): Pas de séance le vendredi" in prompt
    assert "NOTATION COURTE OBLIGATOIRE" in prompt
