from datetime import timedelta

import pytest
from bson import ObjectId

from conftest import STUDENT_S, make_content
from student_achievements.errors import NotFound
from student_achievements.schemas import Attachment, CompetitionDetails
from student_achievements.utils.datetime import utcnow


def test_insert_stores_camel_case_document(details, collection):
    ref = details.insert(STUDENT_S, make_content())

    document = collection.find_one({"_id": ObjectId(ref)})
    assert document["studentId"] == str(STUDENT_S)
    assert document["achievementType"] == "competition"
    assert document["details"]["competitionName"] == "HackCampus"
    assert document["deleted"] is False
    assert "createdAt" in document and "updatedAt" in document


def test_find_by_ref_returns_typed_details(details):
    ref = details.insert(STUDENT_S, make_content())

    detail = details.find_by_ref(ref)

    assert detail.id == ref
    assert detail.student_id == STUDENT_S
    assert isinstance(detail.details, CompetitionDetails)
    assert detail.details.rank == 1


def test_unknown_detail_keys_land_in_custom_fields(details):
    content = make_content(details={"competitionName": "ICPC", "teamSize": 3}, custom_fields={"mentor": "Dr. Rao"})
    assert content.custom_fields == {"teamSize": 3, "mentor": "Dr. Rao"}

    ref = details.insert(STUDENT_S, content)
    detail = details.find_by_ref(ref)

    assert detail.custom_fields["teamSize"] == 3
    assert detail.custom_fields["mentor"] == "Dr. Rao"
    assert detail.details.competition_name == "ICPC"


def test_find_by_ref_with_bad_or_unknown_ref(details):
    assert details.find_by_ref("not-an-object-id") is None
    assert details.find_by_ref(str(ObjectId())) is None


def test_mark_and_unmark_deleted(details):
    ref = details.insert(STUDENT_S, make_content())

    details.mark_deleted(ref)
    assert details.find_by_ref(ref) is None
    hidden = details.find_by_ref(ref, exclude_deleted=False)
    assert hidden.deleted is True and hidden.deleted_at is not None

    details.unmark_deleted(ref)
    restored = details.find_by_ref(ref)
    assert restored.deleted is False
    assert restored.deleted_at is None


def test_writes_to_deleted_document_are_not_found(details):
    ref = details.insert(STUDENT_S, make_content())
    details.mark_deleted(ref)
    attachment = Attachment(file_name="a.pdf", file_url="/uploads/a.pdf", uploaded_at=utcnow())

    with pytest.raises(NotFound):
        details.append_attachment(ref, attachment)
    with pytest.raises(NotFound):
        details.replace_content(ref, make_content(title="Edited"))


def test_mark_deleted_unknown_ref(details):
    with pytest.raises(NotFound):
        details.mark_deleted(str(ObjectId()))
    with pytest.raises(NotFound):
        details.mark_deleted("garbage")


def test_remove_is_physical(details, collection):
    ref = details.insert(STUDENT_S, make_content())
    details.remove(ref)
    assert collection.count_documents({}) == 0


def test_deletion_flags_respects_created_before(details):
    now = utcnow()
    old = details.insert(STUDENT_S, make_content(), now=now - timedelta(hours=1))
    fresh = details.insert(STUDENT_S, make_content(), now=now)
    details.mark_deleted(old)

    assert details.deletion_flags() == {old: True, fresh: False}
    assert details.deletion_flags(created_before=now - timedelta(minutes=5)) == {old: True}


def test_mark_deleted_reports_whether_it_set_the_flag(details):
    ref = details.insert(STUDENT_S, make_content())

    assert details.mark_deleted(ref) is True
    deleted_at = details.find_by_ref(ref, exclude_deleted=False).deleted_at
    assert details.mark_deleted(ref, now=utcnow() + timedelta(hours=1)) is False

    again = details.find_by_ref(ref, exclude_deleted=False)
    assert again.deleted is True
    assert again.deleted_at == deleted_at
