"""KeyedRepository.update: version checks on cold updates only.

Invariants:
    - Already-tracked entities are marked modified without a snapshot read
    - Cold updates compare the incoming version byte-for-byte with the stored row
    - A failed check leaves the session untouched
    - A cold update of a missing key is EntityNotFoundError, not ConcurrencyError
"""

import uuid

import pytest
from sqlalchemy import update

from aggregate_repo.core.errors import ConcurrencyError, EntityNotFoundError
from tests.models import Document, DocumentRepository, detached_copy


async def _force_version(session_maker, doc_id, version: bytes) -> None:
    async with session_maker() as session:
        await session.execute(
            update(Document.__table__).where(Document.__table__.c.id == doc_id).values(version=version)
        )
        await session.commit()


async def test_tracked_update_skips_snapshot_fetch(db, owner, stored_document, monkeypatch):
    repo = DocumentRepository(db, owner)
    doc = await repo.find(stored_document.id)

    def fail_snapshot():
        raise AssertionError("no snapshot expected for a tracked entity")

    monkeypatch.setattr(repo, "get_all_as_no_tracking", fail_snapshot)
    doc.title = "Edited"
    await repo.update(doc)

    assert doc in db.dirty


async def test_tracked_update_ignores_version_contents(db, owner, stored_document, monkeypatch):
    repo = DocumentRepository(db, owner)
    doc = await repo.find(stored_document.id)
    monkeypatch.setattr(repo, "validate_version", lambda new, old: pytest.fail("version checked"))

    doc.version = b""
    await repo.update(doc)

    assert repo.is_tracked(doc)


async def test_cold_update_with_matching_version_succeeds(db, session_maker, owner, stored_document):
    repo = DocumentRepository(db, owner)
    incoming = detached_copy(stored_document, title="Final report")

    await repo.update(incoming)

    assert repo.is_tracked(incoming)
    assert incoming in db.dirty
    await repo.commit()

    async with session_maker() as other:
        stored = await other.get(Document, stored_document.id)
    assert stored.title == "Final report"
    assert stored.version == incoming.version
    assert stored.version != stored_document.version


async def test_cold_update_with_stale_version_raises_without_transition(db, owner, stored_document):
    repo = DocumentRepository(db, owner)
    stale = stored_document.version[:-1] + bytes([stored_document.version[-1] ^ 0xFF])
    incoming = detached_copy(stored_document, title="Overwrite", version=stale)

    with pytest.raises(ConcurrencyError) as excinfo:
        await repo.update(incoming)

    assert excinfo.value.http_status == 409
    assert not repo.is_tracked(incoming)
    assert len(db.dirty) == 0


@pytest.mark.parametrize("version", [None, b""])
async def test_cold_update_without_version_raises(db, owner, stored_document, version):
    repo = DocumentRepository(db, owner)
    incoming = detached_copy(stored_document, version=version)

    with pytest.raises(ConcurrencyError):
        await repo.update(incoming)
    assert not repo.is_tracked(incoming)


async def test_cold_update_with_truncated_version_raises(db, owner, stored_document):
    repo = DocumentRepository(db, owner)
    incoming = detached_copy(stored_document, version=stored_document.version[:8])

    with pytest.raises(ConcurrencyError):
        await repo.update(incoming)


async def test_single_byte_version_mismatch(db, session_maker, owner, stored_document):
    await _force_version(session_maker, stored_document.id, b"\x02")
    repo = DocumentRepository(db, owner)

    with pytest.raises(ConcurrencyError):
        await repo.update(detached_copy(stored_document, version=b"\x01"))

    await repo.update(detached_copy(stored_document, version=b"\x02", title="Accepted"))


async def test_cold_update_of_missing_row_raises_not_found(db, owner):
    repo = DocumentRepository(db, owner)
    ghost = Document(id=uuid.uuid4(), version=b"\x01" * 16, title="Nowhere")

    with pytest.raises(EntityNotFoundError) as excinfo:
        await repo.update(ghost)

    assert not isinstance(excinfo.value, ConcurrencyError)
    assert excinfo.value.key == ghost.id
    assert excinfo.value.http_status == 404
    assert not repo.is_tracked(ghost)


async def test_writer_between_check_and_commit_is_caught_at_commit(session_maker, owner, stored_document):
    async with session_maker() as first, session_maker() as second:
        first_repo = DocumentRepository(first, owner)
        second_repo = DocumentRepository(second, owner)

        await first_repo.update(detached_copy(stored_document, title="First writer"))

        await second_repo.update(detached_copy(stored_document, title="Second writer"))
        await second_repo.commit()

        with pytest.raises(ConcurrencyError):
            await first_repo.commit()
