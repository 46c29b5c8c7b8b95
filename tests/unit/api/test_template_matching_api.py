"""Tests for the template matching, job, pinning and template endpoints."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from docintel.database.models import Customer
from docintel.dependencies import (
    get_customer_repository,
    get_document_metadata_repository,
    get_job_scheduler,
    get_library_storage,
    get_matching_engine,
    get_pinning_controller,
    get_template_characterizer,
    get_template_metadata_repository,
)
from docintel.main import app
from docintel.repositories.customer_repository import CustomerRepository
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.jobs import JobStatus
from docintel.services.background import BackgroundTasks
from docintel.services.jobs.scheduler import MatchingJobScheduler
from docintel.services.library_storage import LibraryStorage
from docintel.services.matching.cache import RelevanceCache
from docintel.services.matching.engine import MatchingEngine
from docintel.services.metadata.template_characterizer import TemplateCharacterizer
from docintel.services.pinning import PinningController, PinningResult

BASE = "/api/v1/template-matching"


@pytest.fixture
def templates(sample_template) -> AsyncMock:
    repository = AsyncMock(spec=TemplateMetadataRepository)

    async def get_by_slug(slug):
        return sample_template if slug == sample_template.template_slug else None

    repository.get_by_slug.side_effect = get_by_slug
    repository.list_all.return_value = [sample_template]
    app.dependency_overrides[get_template_metadata_repository] = lambda: repository
    return repository


@pytest.fixture
def matching_overrides(templates, sample_document):
    customers = AsyncMock(spec=CustomerRepository)
    customers.get_by_id.side_effect = lambda customer_id: (
        Customer(id=7, name="Acme", workspace_slug="acme", created_at=datetime(2025, 8, 1))
        if customer_id == 7
        else None
    )
    documents = AsyncMock(spec=DocumentMetadataRepository)
    documents.list_for_customer.return_value = [sample_document]

    app.dependency_overrides[get_customer_repository] = lambda: customers
    app.dependency_overrides[get_document_metadata_repository] = lambda: documents
    app.dependency_overrides[get_matching_engine] = lambda: MatchingEngine(RelevanceCache())


@pytest.fixture
def scheduler() -> MatchingJobScheduler:
    background = MagicMock(spec=BackgroundTasks)
    background.spawn.side_effect = lambda coro, name: coro.close()
    instance = MatchingJobScheduler(MagicMock(), MatchingEngine(RelevanceCache()), background=background)
    app.dependency_overrides[get_job_scheduler] = lambda: instance
    return instance


class TestMatchTemplate:
    """Tests for POST /template-matching/match-template."""

    def test_ranks_customer_documents(self, test_client, matching_overrides):
        response = test_client.post(
            f"{BASE}/match-template",
            json={"templateSlug": "inventory-report", "customerId": 7, "useAI": False},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["templateSlug"] == "inventory-report"
        assert body["usedAi"] is False
        assert body["matches"][0]["filename"] == "inventory-q3.xlsx"
        assert body["matches"][0]["relevanceScore"] == 10.0
        assert "Expected data types: inventory, financial" in body["promptEnhancement"]

    def test_unknown_template_is_404(self, test_client, matching_overrides):
        response = test_client.post(f"{BASE}/match-template", json={"templateSlug": "missing", "customerId": 7})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "TemplateNotFound"

    def test_unknown_customer_is_404(self, test_client, matching_overrides):
        response = test_client.post(
            f"{BASE}/match-template", json={"templateSlug": "inventory-report", "customerId": 99}
        )

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "CustomerNotFound"

    def test_invalid_customer_id_is_rejected(self, test_client, matching_overrides):
        response = test_client.post(
            f"{BASE}/match-template", json={"templateSlug": "inventory-report", "customerId": 0}
        )

        assert response.status_code == 422


class TestJobEndpoints:
    """Tests for the batch job endpoints."""

    def test_create_get_and_list(self, test_client, scheduler):
        created = test_client.post(f"{BASE}/jobs", json={"templateSlugs": ["inventory-report"], "customerIds": [7]})

        assert created.status_code == 202
        job = created.json()
        assert job["status"] == "pending"
        assert job["templateSlugs"] == ["inventory-report"]

        fetched = test_client.get(f"{BASE}/jobs/{job['id']}")
        listed = test_client.get(f"{BASE}/jobs")

        assert fetched.json()["customerIds"] == [7]
        assert [item["id"] for item in listed.json()["jobs"]] == [job["id"]]

    def test_cancel(self, test_client, scheduler):
        job = scheduler.create()

        response = test_client.delete(f"{BASE}/jobs/{job.id}")

        assert response.status_code == 200
        assert response.json()["ok"] is True

    def test_cancel_finished_job_is_400(self, test_client, scheduler):
        job = scheduler.create()
        job.status = JobStatus.COMPLETED

        response = test_client.delete(f"{BASE}/jobs/{job.id}")

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "JobNotCancellable"

    def test_unknown_job_is_404(self, test_client, scheduler):
        assert test_client.get(f"{BASE}/jobs/tmj_missing").status_code == 404
        assert test_client.delete(f"{BASE}/jobs/tmj_missing").status_code == 404

    def test_clear_jobs(self, test_client, scheduler):
        scheduler.create()
        scheduler.create()

        response = test_client.delete(f"{BASE}/jobs")

        assert response.json()["removedJobs"] == 2
        assert scheduler.list_jobs() == []

    def test_recalculate_all_forces_recomputation(self, test_client, scheduler):
        response = test_client.post(f"{BASE}/recalculate-all")

        assert response.status_code == 202
        assert response.json()["forceRecalculate"] is True
        assert response.json()["createdBy"] == "recalculate-all"


class TestPinEndpoints:
    """Tests for /pin and /unpin."""

    @pytest.fixture
    def pinning(self) -> AsyncMock:
        mock = AsyncMock(spec=PinningController)
        app.dependency_overrides[get_pinning_controller] = lambda: mock
        return mock

    def test_pin(self, test_client, pinning):
        pinning.pin_relevant_documents.return_value = PinningResult(
            pinned_documents=["Acme/top.docx-1.json"],
            total_relevant_docs=1,
            highest_score=9.0,
            lowest_pinned_score=9.0,
        )

        response = test_client.post(
            f"{BASE}/pin",
            json={"workspaceSlug": "acme", "templateSlug": "inventory-report", "customerId": 7, "minScore": 8},
        )

        assert response.status_code == 200
        assert response.json()["pinnedDocuments"] == ["Acme/top.docx-1.json"]
        assert pinning.pin_relevant_documents.await_args.kwargs["min_score"] == 8

    def test_unpin_reports_failures(self, test_client, pinning):
        pinning.unpin_documents.return_value = ["b.json"]

        response = test_client.post(
            f"{BASE}/unpin", json={"workspaceSlug": "acme", "documentPaths": ["a.json", "b.json"]}
        )

        assert response.json() == {"ok": False, "unpinned": ["a.json"], "failed": ["b.json"]}


class TestTemplateEndpoints:
    """Tests for /templates."""

    @pytest.fixture
    def characterizer(self) -> AsyncMock:
        mock = AsyncMock(spec=TemplateCharacterizer)
        app.dependency_overrides[get_template_characterizer] = lambda: mock
        return mock

    def test_analyze_stores_file_and_characterizes(self, test_client, tmp_path, characterizer, sample_template):
        app.dependency_overrides[get_library_storage] = lambda: LibraryStorage(str(tmp_path))
        characterizer.characterize.return_value = sample_template

        response = test_client.post(
            "/api/v1/templates/inventory-report/analyze",
            files={"file": ("inventory-report.xlsx", b"template", "application/octet-stream")},
            data={"workspace_slug": "acme"},
        )

        assert response.status_code == 201
        assert response.json()["requiredDataTypes"] == ["inventory", "financial"]
        path, slug, name, workspace = characterizer.characterize.await_args.args
        assert path == (tmp_path / "templates" / "inventory-report" / "inventory-report.xlsx").resolve()
        assert (slug, name, workspace) == ("inventory-report", "inventory-report", "acme")

    def test_generation_time_for_unknown_template(self, test_client, characterizer):
        characterizer.record_generation_time.return_value = None

        response = test_client.post("/api/v1/templates/missing/generation-time", json={"seconds": 4.2})

        assert response.status_code == 200
        assert response.json() == {"ok": True, "recorded": False, "template": None}

    def test_template_metadata_lookup(self, test_client, templates):
        found = test_client.get("/api/v1/templates/inventory-report/metadata")
        missing = test_client.get("/api/v1/templates/missing/metadata")
        listed = test_client.get("/api/v1/templates/metadata")

        assert found.json()["templateName"] == "Inventory Report"
        assert missing.status_code == 404
        assert [item["templateSlug"] for item in listed.json()] == ["inventory-report"]
