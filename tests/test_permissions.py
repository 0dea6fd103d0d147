"""Data permission filtering and caller-session resolution."""

import uuid

import pytest

from aggregate_repo.core.app_session import AppSession, bind_app_session, current_app_session
from aggregate_repo.core.errors import AppSessionUnavailableError
from tests.models import Document, DocumentRepository, PlainDocumentRepository, TenantDocumentRepository


@pytest.fixture
async def shared_rows(seed, owner, other_user):
    return await seed(
        Document(title="mine", owner_id=owner.user_id, tenant_id=owner.tenant_id),
        Document(title="theirs", owner_id=other_user.user_id, tenant_id=other_user.tenant_id),
        Document(title="team", owner_id=other_user.user_id, tenant_id=owner.tenant_id),
    )


async def _titles(query):
    return sorted(d.title for d in await query.all())


async def test_admin_sees_every_row(db, admin, shared_rows):
    repo = DocumentRepository(db, admin)
    assert await _titles(repo.get_all_filter_data_permissions()) == ["mine", "team", "theirs"]


async def test_non_admin_sees_only_rows_accepted_by_predicate(db, owner, shared_rows):
    repo = DocumentRepository(db, owner)
    assert await _titles(repo.get_all_filter_data_permissions()) == ["mine"]


async def test_filtered_query_stays_composable(db, owner, shared_rows):
    repo = DocumentRepository(db, owner)
    query = repo.get_all_filter_data_permissions().where(Document.title == "theirs")
    assert await query.all() == []


async def test_default_predicate_accepts_every_row(db, owner, shared_rows):
    repo = PlainDocumentRepository(db, owner)
    assert await _titles(repo.get_all_filter_data_permissions()) == ["mine", "team", "theirs"]


async def test_tenant_repository_filters_by_tenant(db, owner, shared_rows):
    repo = TenantDocumentRepository(db, owner)
    assert await _titles(repo.get_all_filter_data_permissions()) == ["mine", "team"]


async def test_tenant_repository_without_tenant_sees_nothing(db, shared_rows):
    repo = TenantDocumentRepository(db, AppSession(user_id=uuid.uuid4()))
    assert await repo.get_all_filter_data_permissions().all() == []


async def test_provider_is_resolved_once_per_repository(db, owner, shared_rows):
    calls = []

    def provider():
        calls.append(1)
        return owner

    repo = DocumentRepository(db, provider)
    assert calls == []

    await repo.get_all_filter_data_permissions().all()
    await repo.get_all_filter_data_permissions().all()

    assert len(calls) == 1
    assert repo.app_session is owner


async def test_bound_session_provider(db, admin, shared_rows):
    repo = DocumentRepository(db, current_app_session)

    with bind_app_session(admin):
        assert len(await repo.get_all_filter_data_permissions().all()) == 3


async def test_unbound_session_provider_raises(db):
    repo = DocumentRepository(db, current_app_session)

    with pytest.raises(AppSessionUnavailableError):
        repo.get_all_filter_data_permissions()
