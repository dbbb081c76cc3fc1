from __future__ import annotations

import pytest

from app.core.errors import ConflictError, NotFoundError
from app.models.memo_match import MemoMatch
from app.services.memo_matches import (
    create_memo_match,
    delete_memo_match,
    find_memo_match,
    list_memo_matches,
    memo_from_bank_description,
    upsert_memo_match,
)


@pytest.mark.parametrize(
    ("description", "expected"),
    [
        ("Zelle payment from ABEBA TESFAYE 19283746", "ABEBA TESFAYE"),
        ("CHECK 1042 ST MARY BOOKSTORE", "ST MARY BOOKSTORE"),
        ("ORIG CO NAME:PAYROLL IND NAME:TESFAYE,ABEBA", "PAYROLL TESFAYE,ABEBA"),
        ("  Deposit   on 06/01/2024  ", "Deposit on"),
    ],
)
def test_memo_from_bank_description(description, expected):
    assert memo_from_bank_description(description) == expected


def test_upsert_lifecycle(db_session, sample_member, member_factory):
    other = member_factory(first_name="Dawit", last_name="Alemu")

    match, action = upsert_memo_match(db_session, "  Sunday   tithe ", sample_member)
    assert action == "created"
    assert match.memo == "Sunday tithe"

    _, action = upsert_memo_match(db_session, "SUNDAY TITHE", sample_member)
    assert action == "unchanged"

    match, action = upsert_memo_match(db_session, "sunday tithe", other)
    assert action == "repointed"
    assert (match.member_id, match.first_name, match.last_name) == (other.id, "Dawit", "Alemu")

    assert upsert_memo_match(db_session, "ab", other) == (None, "skipped")
    db_session.commit()
    assert db_session.query(MemoMatch).count() == 1


def test_find_memo_match_ignores_blank(db_session):
    assert find_memo_match(db_session, "   ") is None
    assert find_memo_match(db_session, None) is None


def test_create_and_delete(db_session, sample_member):
    match = create_memo_match(db_session, "Building fund", sample_member)

    with pytest.raises(ConflictError):
        create_memo_match(db_session, "building FUND", sample_member)

    assert [m.id for m in list_memo_matches(db_session, q="build")] == [match.id]
    assert list_memo_matches(db_session, member_id=sample_member.id + 100) == []

    delete_memo_match(db_session, match.id)
    with pytest.raises(NotFoundError):
        delete_memo_match(db_session, match.id)


def test_memo_match_api(client, authorize, finance_user, sample_member):
    authorize(finance_user)

    created = client.post("/memo-matches", json={"memo": "Feast day gift", "member_id": sample_member.id})
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["first_name"] == "Abeba"

    duplicate = client.post("/memo-matches", json={"memo": "feast day gift", "member_id": sample_member.id})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "conflict"

    missing_member = client.post("/memo-matches", json={"memo": "Another memo", "member_id": 9999})
    assert missing_member.status_code == 404

    listed = client.get("/memo-matches", params={"member_id": sample_member.id})
    assert [item["memo"] for item in listed.json()] == ["Feast day gift"]

    deleted = client.delete(f"/memo-matches/{body['id']}")
    assert deleted.status_code == 204
    assert client.delete(f"/memo-matches/{body['id']}").status_code == 404


def test_memo_match_api_requires_finance_role(client, authorize, office_admin_user):
    authorize(office_admin_user)

    assert client.get("/memo-matches").status_code == 403
