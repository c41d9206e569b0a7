import re
from unittest import mock

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from uwuweb.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from uwuweb.attendance.crud.justifications import (
    approve_justification,
    decide_justification,
    get_justification_details,
    list_justifications,
    open_justification_file,
    reject_justification,
    submit_justification,
)
from uwuweb.attendance.models import JustificationStatus

PDF_BYTES = b"%PDF-1.4\n%test document\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


async def test_submit_reject_then_admin_approve(session, school):
    record = school.records.ana_absent

    response = await submit_justification(
        session, school.actors.ana, record.id, text="doctor visit"
    )
    assert response.success
    assert not response.file_uploaded
    assert record.justification_status == JustificationStatus.pending

    await reject_justification(session, school.actors.mojca, record.id, "no proof")
    await session.refresh(record)
    assert record.justification_status == JustificationStatus.rejected
    assert record.reject_reason == "no proof"

    await approve_justification(session, school.actors.admin, record.id)
    await session.refresh(record)
    assert record.justification_status == JustificationStatus.approved
    assert record.reject_reason is None
    assert record.justification_text == "doctor visit"


async def test_unassigned_teacher_cannot_decide(session, school):
    record = school.records.ana_absent
    await submit_justification(session, school.actors.ana, record.id, text="sick")

    with pytest.raises(AuthorizationError):
        await decide_justification(
            session, school.actors.jure, record.id, False, "no proof"
        )

    await session.refresh(record)
    assert record.justification_status == JustificationStatus.pending
    assert record.reject_reason is None


async def test_student_cannot_submit_for_someone_else(session, school):
    record = school.records.ana_absent

    with pytest.raises(AuthorizationError):
        await submit_justification(session, school.actors.bor, record.id, text="sick")

    await session.refresh(record)
    assert record.justification_status == JustificationStatus.none
    assert record.justification_text is None


async def test_admin_can_submit_on_behalf_of_student(session, school):
    record = school.records.bor_absent

    await submit_justification(session, school.actors.admin, record.id, text="phoned in")

    await session.refresh(record)
    assert record.justification_status == JustificationStatus.pending


async def test_present_record_cannot_be_justified(session, school):
    with pytest.raises(ValidationError):
        await submit_justification(
            session, school.actors.ana, school.records.ana_present.id, text="was here"
        )


async def test_resubmission_after_rejection(session, school):
    record = school.records.ana_absent
    await submit_justification(session, school.actors.ana, record.id, text="sick")
    await decide_justification(session, school.actors.mojca, record.id, False, "no proof")

    await submit_justification(
        session, school.actors.ana, record.id, text="sick, note from doctor"
    )

    await session.refresh(record)
    assert record.justification_status == JustificationStatus.pending
    assert record.reject_reason is None
    assert record.justification_text == "sick, note from doctor"


async def test_approved_justification_is_final(session, school):
    record = school.records.ana_absent
    await submit_justification(session, school.actors.ana, record.id, text="sick")
    await decide_justification(session, school.actors.mojca, record.id, True)

    with pytest.raises(ValidationError):
        await submit_justification(session, school.actors.ana, record.id, text="other")

    await session.refresh(record)
    assert record.justification_status == JustificationStatus.approved
    assert record.justification_text == "sick"


async def test_decision_without_justification_fails(session, school):
    with pytest.raises(ValidationError):
        await approve_justification(
            session, school.actors.mojca, school.records.ana_absent.id
        )


async def test_reject_requires_reason_before_loading(session, school):
    with mock.patch.object(session, "execute", mock.AsyncMock()) as execute:
        with pytest.raises(ValidationError):
            await decide_justification(
                session, school.actors.mojca, school.records.ana_absent.id, False, "  "
            )

    execute.assert_not_awaited()


async def test_unknown_and_invalid_ids(session, school):
    with pytest.raises(NotFoundError):
        await submit_justification(session, school.actors.ana, 9999, text="sick")

    with pytest.raises(ValidationError):
        await submit_justification(session, school.actors.ana, 0, text="sick")


async def test_submit_with_file(session, school, storage):
    record = school.records.ana_absent

    response = await submit_justification(
        session, school.actors.ana, record.id, file_data=PDF_BYTES, storage=storage
    )

    assert response.file_uploaded
    assert re.fullmatch(
        rf"justification_{record.id}_[0-9a-f]{{32}}\.pdf", record.justification_file
    )
    assert (storage.base_dir / record.justification_file).read_bytes() == PDF_BYTES


async def test_new_file_replaces_old_one(session, school, storage):
    record = school.records.ana_absent
    await submit_justification(
        session, school.actors.ana, record.id, file_data=PDF_BYTES, storage=storage
    )
    first_file = record.justification_file

    await submit_justification(
        session, school.actors.ana, record.id, file_data=PNG_BYTES, storage=storage
    )

    assert record.justification_file.endswith(".png")
    assert not (storage.base_dir / first_file).exists()
    assert len(list(storage.base_dir.iterdir())) == 1


async def test_invalid_file_type_is_rejected(session, school, storage):
    record = school.records.ana_absent

    with pytest.raises(ValidationError):
        await submit_justification(
            session, school.actors.ana, record.id,
            text="sick", file_data=b"MZ\x90\x00 not a document", storage=storage,
        )

    await session.refresh(record)
    assert record.justification_status == JustificationStatus.none
    assert not storage.base_dir.exists() or not any(storage.base_dir.iterdir())


async def test_stored_file_removed_when_transition_fails(session, school, storage):
    with pytest.raises(ValidationError):
        await submit_justification(
            session, school.actors.ana, school.records.ana_present.id,
            file_data=PDF_BYTES, storage=storage,
        )

    assert not any(storage.base_dir.iterdir())


async def test_commit_failure_is_storage_error(session, school, storage):
    record = school.records.ana_absent
    failing_commit = mock.AsyncMock(
        side_effect=OperationalError("COMMIT", {}, Exception("disk full"))
    )

    with mock.patch.object(session, "commit", failing_commit):
        with pytest.raises(StorageError):
            await submit_justification(
                session, school.actors.ana, record.id,
                text="sick", file_data=PDF_BYTES, storage=storage,
            )

    await session.refresh(record)
    assert record.justification_status == JustificationStatus.none
    assert record.justification_file is None
    assert not any(storage.base_dir.iterdir())


async def test_read_failure_is_storage_error(session, school):
    failing = mock.AsyncMock(
        side_effect=OperationalError("SELECT", {}, Exception("connection lost"))
    )

    with mock.patch.object(session, "execute", failing):
        with pytest.raises(StorageError):
            await submit_justification(
                session, school.actors.ana, school.records.ana_absent.id, text="sick"
            )


class TestReadModels:
    @pytest_asyncio.fixture
    async def submitted(self, session, school):
        await submit_justification(
            session, school.actors.ana, school.records.ana_absent.id, text="sick"
        )
        await submit_justification(
            session, school.actors.bor, school.records.bor_absent.id, text="dentist"
        )
        await decide_justification(
            session, school.actors.mojca, school.records.bor_absent.id, True
        )
        return school

    async def test_teacher_sees_class_subjects_they_teach(self, session, submitted):
        items = await list_justifications(session, submitted.actors.mojca)

        assert {item.id for item in items} == {
            submitted.records.ana_absent.id,
            submitted.records.bor_absent.id,
        }
        assert await list_justifications(session, submitted.actors.jure) == []

    async def test_ordering_and_labels(self, session, submitted):
        items = await list_justifications(session, submitted.actors.admin)

        # Same date: ordered by last name (Kranjc before Novak)
        assert [item.last_name for item in items] == ["Kranjc", "Novak"]
        first = items[0]
        assert first.formatted_date == "04.03.2024"
        assert first.status_label == "Absent"
        assert first.approval_status == "approved"
        assert first.approval_label == "Approved"
        assert first.approved is True
        assert first.subject_name == "Mathematics"
        assert first.class_code == "1A"

    async def test_status_and_student_filters(self, session, submitted):
        pending = await list_justifications(
            session, submitted.actors.mojca, status=JustificationStatus.pending
        )
        assert [item.id for item in pending] == [submitted.records.ana_absent.id]

        only_bor = await list_justifications(
            session, submitted.actors.admin, student_id=submitted.students.bor.id
        )
        assert [item.student_id for item in only_bor] == [submitted.students.bor.id]

    async def test_student_and_parent_scope(self, session, submitted):
        own = await list_justifications(session, submitted.actors.ana)
        children = await list_justifications(session, submitted.actors.petra)

        assert [item.id for item in own] == [submitted.records.ana_absent.id]
        assert [item.id for item in children] == [submitted.records.ana_absent.id]

    async def test_none_is_not_a_valid_filter(self, session, submitted):
        with pytest.raises(ValidationError):
            await list_justifications(
                session, submitted.actors.admin, status=JustificationStatus.none
            )

    async def test_details(self, session, submitted):
        detail = await get_justification_details(
            session, submitted.actors.petra, submitted.records.ana_absent.id
        )

        assert detail.first_name == "Ana"
        assert detail.teacher_id == submitted.teachers.mojca.id
        assert detail.teacher_username == "mojca"
        assert detail.approval_status == "pending"
        assert detail.approved is None

    async def test_details_access_and_missing_justification(self, session, submitted):
        with pytest.raises(AuthorizationError):
            await get_justification_details(
                session, submitted.actors.petra, submitted.records.bor_absent.id
            )

        with pytest.raises(NotFoundError):
            await get_justification_details(
                session, submitted.actors.admin, submitted.records.cene_late.id
            )


async def test_open_justification_file(session, school, storage):
    record = school.records.ana_absent
    await submit_justification(
        session, school.actors.ana, record.id, file_data=PDF_BYTES, storage=storage
    )

    path, download_name, media_type = await open_justification_file(
        session, school.actors.mojca, record.id, storage=storage
    )

    assert path.read_bytes() == PDF_BYTES
    assert download_name == "Ana_Novak_1A_justification.pdf"
    assert media_type == "application/pdf"

    with pytest.raises(AuthorizationError):
        await open_justification_file(session, school.actors.bor, record.id, storage=storage)


async def test_open_file_without_file(session, school, storage):
    record = school.records.ana_absent
    await submit_justification(session, school.actors.ana, record.id, text="sick")

    with pytest.raises(NotFoundError):
        await open_justification_file(session, school.actors.ana, record.id, storage=storage)
