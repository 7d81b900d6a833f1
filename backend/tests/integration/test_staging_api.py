"""Integration tests for the staging API

The app runs with an in-memory SQLite canonical store and a staging service
driven by a VirtualScheduler that nobody advances, so uploaded files stay
``uploading``. Records in later states are seeded through the store.
"""

import pytest
from fastapi.testclient import TestClient

from regflow.database import init_db, make_engine, make_session_factory
from regflow.dependencies import build_staging_service
from regflow.domain.staging import StagingStatus
from regflow.infrastructure.canonical.sql_canonical_store import SqlCanonicalStore
from regflow.infrastructure.ids import SequentialIdGenerator
from regflow.infrastructure.scheduling import VirtualScheduler
from regflow.main import create_app

from ..fixtures.staging import OTHER_PROJECT_ID, PROJECT_ID, complete_fields, seed_record

pytestmark = pytest.mark.integration

API = "/api/v1"
PDF_BYTES = b"%PDF-1.4\n%test document\n"


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def canonical(engine):
    canonical = SqlCanonicalStore(make_session_factory(engine))
    canonical.seed_default_categories()
    canonical.register_project(PROJECT_ID, "Cardiac Monitor Registration", code="REG-001")
    return canonical


@pytest.fixture
def api_settings(test_settings):
    return test_settings.model_copy(update={"MAX_UPLOAD_SIZE_BYTES": 1024})


@pytest.fixture
def api_service(api_settings, canonical):
    return build_staging_service(
        api_settings,
        canonical_store=canonical,
        scheduler=VirtualScheduler(),
        id_generator=SequentialIdGenerator(),
    )


@pytest.fixture
def staging_store(api_service):
    return api_service.store


@pytest.fixture
def client(api_settings, engine, api_service):
    app = create_app(api_settings, engine=engine, staging_service=api_service)
    with TestClient(app) as client:
        yield client


def pdf(name, content=PDF_BYTES, mime_type="application/pdf"):
    return ("files", (name, content, mime_type))


class TestUploadEndpoint:
    def test_mixed_batch(self, client):
        response = client.post(f"{API}/projects/{PROJECT_ID}/staging", files=[
            pdf("检测报告_2024_001.pdf"),
            pdf("archive.zip", mime_type="application/zip"),
            pdf("big.pdf", content=b"x" * 2048),
        ])

        assert response.status_code == 201
        body = response.json()
        assert len(body["accepted"]) == 1
        accepted = body["accepted"][0]
        assert accepted["original_file_name"] == "检测报告_2024_001.pdf"
        assert accepted["name"] == "检测报告_2024_001"
        assert accepted["status"] == "uploading"
        assert accepted["progress_percent"] == 0
        assert accepted["suggestions"] is None
        assert [(r["file_name"], r["reason"]) for r in body["rejected"]] == [
            ("archive.zip", "UNSUPPORTED_TYPE"),
            ("big.pdf", "SIZE_EXCEEDED"),
        ]

    def test_too_many_files(self, client, staging_store):
        response = client.post(
            f"{API}/projects/{PROJECT_ID}/staging",
            files=[pdf(f"{i}.pdf") for i in range(11)],
        )

        assert response.status_code == 400
        assert len(staging_store) == 0

    def test_no_files(self, client):
        response = client.post(f"{API}/projects/{PROJECT_ID}/staging")
        assert response.status_code == 422


class TestListEndpoints:
    def test_list_with_filters(self, client, staging_store):
        manual = seed_record(staging_store, "product_manual.pdf", name="产品使用说明书")
        seed_record(staging_store, "检测报告.pdf")
        seed_record(staging_store, "manual_draft.pdf", status=StagingStatus.FAILED)
        seed_record(staging_store, "other_manual.pdf", project_id=OTHER_PROJECT_ID)

        response = client.get(
            f"{API}/projects/{PROJECT_ID}/staging",
            params={"status": "ready", "keyword": "manual"},
        )

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [manual.id]

    def test_list_newest_first_with_pagination(self, client, staging_store):
        ids = [seed_record(staging_store, f"{i}.pdf").id for i in range(3)]

        first = client.get(f"{API}/projects/{PROJECT_ID}/staging", params={"limit": 2})
        second = client.get(f"{API}/projects/{PROJECT_ID}/staging", params={"limit": 2, "offset": 2})

        assert [r["id"] for r in first.json()] == [ids[2], ids[1]]
        assert [r["id"] for r in second.json()] == [ids[0]]

    def test_invalid_status_filter(self, client):
        response = client.get(f"{API}/projects/{PROJECT_ID}/staging", params={"status": "bogus"})
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_stats(self, client, staging_store):
        seed_record(staging_store, "a.pdf")
        seed_record(staging_store, "b.pdf", status=StagingStatus.FAILED)

        body = client.get(f"{API}/projects/{PROJECT_ID}/staging/stats").json()

        assert body["total"] == 2
        assert body["counts"]["ready"] == 1
        assert body["counts"]["failed"] == 1
        assert body["counts"]["uploading"] == 0

    def test_get_single_record(self, client, staging_store):
        record = seed_record(staging_store, "检测报告.pdf")

        body = client.get(f"{API}/staging/{record.id}").json()

        assert body["status"] == "ready"
        assert body["suggestions"]["suggested_category"]["id"] == "test-report"
        assert body["suggestions"]["confidence"] == 0.85

    def test_get_missing_record(self, client):
        assert client.get(f"{API}/staging/stg-missing").status_code == 404

    def test_categories(self, client):
        body = client.get(f"{API}/categories").json()
        assert [c["id"] for c in body] == [
            "application-form",
            "product-manual",
            "technical-documentation",
            "test-report",
            "design-drawings",
            "clinical-trial",
        ]


class TestEditEndpoints:
    def test_patch(self, client, staging_store):
        record = seed_record(staging_store, "a.pdf")

        response = client.patch(f"{API}/staging/{record.id}", json={
            "name": "注册申请表",
            "category_id": "application-form",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "注册申请表"
        assert body["category"] == {"id": "application-form", "name": "Application Form"}
        assert body["description"] == ""

    def test_patch_unknown_category(self, client, staging_store):
        record = seed_record(staging_store, "a.pdf")
        response = client.patch(f"{API}/staging/{record.id}", json={"category_id": "nope"})
        assert response.status_code == 422

    def test_patch_rejects_lifecycle_fields(self, client, staging_store):
        record = seed_record(staging_store, "a.pdf")
        response = client.patch(f"{API}/staging/{record.id}", json={"status": "ready"})
        assert response.status_code == 422

    @pytest.mark.parametrize("field", ["name", "description"])
    def test_patch_rejects_null_text_fields(self, client, staging_store, field):
        record = seed_record(staging_store, "manual.pdf", **complete_fields())

        response = client.patch(f"{API}/staging/{record.id}", json={field: None})

        assert response.status_code == 422
        assert staging_store.get(record.id) == record
        listed = client.get(f"{API}/projects/{PROJECT_ID}/staging", params={"keyword": "manual"})
        assert [r["id"] for r in listed.json()] == [record.id]

    def test_batch_update_rejects_null_name(self, client, staging_store):
        record = seed_record(staging_store, "a.pdf")

        response = client.post(f"{API}/staging/batch-update", json={
            "ids": [record.id],
            "patch": {"name": None},
        })

        assert response.status_code == 422
        assert staging_store.get(record.id).name == "a"

    def test_patch_null_category_clears_it(self, client, staging_store):
        record = seed_record(staging_store, "a.pdf", **complete_fields())

        response = client.patch(f"{API}/staging/{record.id}", json={"category_id": None})

        assert response.status_code == 200
        assert response.json()["category"] is None

    def test_patch_missing_record(self, client):
        response = client.patch(f"{API}/staging/stg-missing", json={"name": "x"})
        assert response.status_code == 404

    def test_batch_update(self, client, staging_store):
        a = seed_record(staging_store, "a.pdf")
        b = seed_record(staging_store, "b.pdf")

        response = client.post(f"{API}/staging/batch-update", json={
            "ids": [a.id, b.id, "stg-missing"],
            "patch": {"description": "批量描述"},
        })

        assert response.json() == {"updated": [a.id, b.id], "not_found": ["stg-missing"]}
        assert staging_store.get(b.id).description == "批量描述"

    def test_apply_suggestion(self, client, staging_store):
        record = seed_record(staging_store, "产品说明书.pdf")

        response = client.post(f"{API}/staging/{record.id}/apply-suggestion", json={"field": "category"})

        assert response.status_code == 200
        assert response.json()["category"]["id"] == "product-manual"

    def test_apply_suggestion_before_analysis(self, client, staging_store):
        record = seed_record(staging_store, "a.pdf", status=StagingStatus.UPLOADING)
        response = client.post(f"{API}/staging/{record.id}/apply-suggestion", json={"field": "name"})
        assert response.status_code == 409

    def test_cancel_upload(self, client):
        upload = client.post(f"{API}/projects/{PROJECT_ID}/staging", files=[pdf("a.pdf")]).json()
        record_id = upload["accepted"][0]["id"]

        response = client.post(f"{API}/staging/{record_id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_cancel_ready_record(self, client, staging_store):
        record = seed_record(staging_store, "a.pdf")
        assert client.post(f"{API}/staging/{record.id}/cancel").status_code == 409


class TestDeleteEndpoints:
    def test_delete_is_idempotent(self, client, staging_store):
        record = seed_record(staging_store, "a.pdf")

        assert client.delete(f"{API}/staging/{record.id}").status_code == 204
        assert client.delete(f"{API}/staging/{record.id}").status_code == 204
        assert client.get(f"{API}/staging/{record.id}").status_code == 404

    def test_batch_delete(self, client, staging_store):
        a = seed_record(staging_store, "a.pdf")
        b = seed_record(staging_store, "b.pdf")

        response = client.post(f"{API}/staging/batch-delete", json={"ids": [a.id, b.id]})

        assert response.status_code == 204
        assert len(staging_store) == 0

    def test_clear_project(self, client, staging_store):
        client.post(f"{API}/projects/{PROJECT_ID}/staging", files=[pdf("a.pdf"), pdf("b.pdf")])
        seed_record(staging_store, "c.pdf")
        other = seed_record(staging_store, "d.pdf", project_id=OTHER_PROJECT_ID)

        assert client.delete(f"{API}/projects/{PROJECT_ID}/staging").status_code == 204
        assert client.get(f"{API}/projects/{PROJECT_ID}/staging").json() == []
        assert [r["id"] for r in client.get(f"{API}/projects/{OTHER_PROJECT_ID}/staging").json()] == [other.id]


class TestConfirmEndpoint:
    def test_confirm_success(self, client, staging_store, canonical):
        a = seed_record(staging_store, "检测报告.pdf", **complete_fields())
        b = seed_record(staging_store, "b.pdf", **complete_fields())

        response = client.post(
            f"{API}/projects/{PROJECT_ID}/staging/confirm",
            json={"staging_file_ids": [a.id, b.id]},
        )

        assert response.status_code == 200
        assert response.json() == {"committed_count": 2, "committed_ids": [a.id, b.id]}
        assert client.get(f"{API}/staging/{a.id}").status_code == 404
        files = canonical.list_project_files(PROJECT_ID)
        assert {f["source_staging_id"] for f in files} == {a.id, b.id}
        assert canonical.get_project_statistics(PROJECT_ID)["submitted"] == 2

    def test_confirm_validation_failure(self, client, staging_store, canonical):
        good = seed_record(staging_store, "good.pdf", **complete_fields())
        bad = seed_record(staging_store, "bad.pdf", name="Bad", description="No category")

        response = client.post(
            f"{API}/projects/{PROJECT_ID}/staging/confirm",
            json={"staging_file_ids": [good.id, bad.id]},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_failed"
        assert body["failures"] == [{
            "record_id": bad.id,
            "reason": "MISSING_CATEGORY",
            "message": 'File "bad.pdf" is missing a category',
            "file_name": "bad.pdf",
            "field": "category",
        }]
        assert staging_store.get(good.id) is not None
        assert canonical.list_project_files(PROJECT_ID) == []

    def test_confirm_empty_selection(self, client):
        response = client.post(
            f"{API}/projects/{PROJECT_ID}/staging/confirm",
            json={"staging_file_ids": []},
        )

        assert response.status_code == 422
        assert response.json()["failures"][0]["reason"] == "EMPTY_SELECTION"

    def test_confirm_commit_error(self, client, staging_store):
        """Test a canonical store failure returns 502 and leaves staging intact"""
        record = seed_record(staging_store, "a.pdf", project_id="project-unregistered", **complete_fields())

        response = client.post(
            "/api/v1/projects/project-unregistered/staging/confirm",
            json={"staging_file_ids": [record.id]},
        )

        assert response.status_code == 502
        assert staging_store.get(record.id).status == StagingStatus.READY


class TestObservability:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["components"]["database"]["status"] == "healthy"
        assert "active_lifecycle_tasks" in body["staging"]

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "staging_uploads_total" in response.text

    def test_request_id_header(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestStartupProjects:
    """The app registers SEED_PROJECTS on startup, so confirmation works out of the box"""

    @pytest.fixture
    def fresh_app(self, api_settings):
        engine = make_engine("sqlite://")
        service = build_staging_service(
            api_settings,
            session_factory=make_session_factory(engine),
            scheduler=VirtualScheduler(),
            id_generator=SequentialIdGenerator(),
        )
        app = create_app(api_settings, engine=engine, staging_service=service)
        yield app, service
        engine.dispose()

    def test_confirm_without_manual_registration(self, fresh_app):
        app, service = fresh_app

        with TestClient(app) as client:
            record = seed_record(service.store, "检测报告.pdf", **complete_fields())

            response = client.post(
                f"{API}/projects/{PROJECT_ID}/staging/confirm",
                json={"staging_file_ids": [record.id]},
            )

            assert response.status_code == 200
            assert response.json()["committed_count"] == 1
            files = service.canonical_store.list_project_files(PROJECT_ID)
            assert [f["source_staging_id"] for f in files] == [record.id]

    def test_unknown_project_still_fails(self, fresh_app):
        app, service = fresh_app

        with TestClient(app) as client:
            record = seed_record(service.store, "a.pdf", project_id="project-999", **complete_fields())

            response = client.post(
                f"{API}/projects/project-999/staging/confirm",
                json={"staging_file_ids": [record.id]},
            )

            assert response.status_code == 502
            assert service.store.get(record.id) is not None
