from __future__ import annotations

import pytest
from sqlalchemy import JSON, select, type_coerce

from tunematch.models.types import LabelList, normalize_labels
from tunematch.models.user import MusicProfile
from tunematch.services import user_service
from tunematch.tests.utils import make_user


def test_normalize_labels_trims_and_dedupes_case_insensitively():
    assert normalize_labels([" Hip   Hop ", "hip hop", "", None, "Jazz"]) == ["Hip Hop", "Jazz"]


def test_label_list_decodes_versioned_and_bare_payloads():
    column_type = LabelList()
    assert column_type.process_result_value({"version": 1, "labels": ["rock", "Rock"]}, None) == ["rock"]
    assert column_type.process_result_value(["pop", " pop "], None) == ["pop"]
    assert column_type.process_result_value(None, None) == []
    with pytest.raises(ValueError):
        column_type.process_result_value({"version": 99, "labels": []}, None)


@pytest.mark.asyncio
async def test_labels_are_stored_in_a_versioned_envelope(session):
    user = await make_user(session, genres=["Indie", " indie "], artists=["Bon Iver"], songs=[])

    raw = await session.scalar(
        select(type_coerce(MusicProfile.genres, JSON)).where(MusicProfile.user_id == user.id)
    )

    session.expire_all()
    profile = await user_service.get_music_profile(session, user.id)
    assert profile.genres == ["Indie"]
    assert profile.songs == []
    assert raw == {"version": 1, "labels": ["Indie"]}
