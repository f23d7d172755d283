import random

import pytest

from HealthChat.crud import chat as store
from HealthChat.services.mock_responses import (
    CYCLE_VARIANCE_RESPONSE,
    FLOW_RESPONSE,
    GENERIC_RESPONSES,
    PAIN_RESPONSE,
    get_mock_response,
)
from HealthChat.services.preview import build_preview, update_preview


@pytest.mark.parametrize(
    "content, expected",
    [
        ("", ""),
        ("short reply", "short reply"),
        ("x" * 50, "x" * 50),
        ("y" * 51, "y" * 50 + "..."),
    ],
)
def test_build_preview(content, expected):
    assert build_preview(content) == expected


def test_update_preview_sets_preview_and_bumps_updated_at(db):
    conv = store.create_conversation(db, "user-1", "A42")
    db.commit()
    before = conv.updated_at
    assert conv.preview is None

    update_preview(db, conv.id, "")
    db.commit()
    assert conv.preview == ""
    assert conv.updated_at > before

    update_preview(db, conv.id, "z" * 80)
    db.commit()
    assert conv.preview == "z" * 50 + "..."
    assert len(conv.preview) == 53


@pytest.mark.parametrize(
    "text, expected",
    [
        ("I have terrible CRAMPS today", PAIN_RESPONSE),
        ("the pain is bad", PAIN_RESPONSE),
        ("my period is late", CYCLE_VARIANCE_RESPONSE),
        ("I Missed a cycle", CYCLE_VARIANCE_RESPONSE),
        ("very heavy days", FLOW_RESPONSE),
        ("my flow changed", FLOW_RESPONSE),
        ("late and cramping", PAIN_RESPONSE),
    ],
)
def test_mock_keyword_routing(text, expected):
    assert get_mock_response(text) == expected


def test_mock_generic_pick_is_seeded():
    first = get_mock_response("hello there", random.Random(3))
    again = get_mock_response("hello there", random.Random(3))

    assert first in GENERIC_RESPONSES
    assert first == again
    assert get_mock_response(None, random.Random(1)) in GENERIC_RESPONSES
