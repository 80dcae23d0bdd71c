"""
Integration Tests for Portfolio Record Endpoints
Tests for: create/list/update/delete/download across record kinds, ownership,
upload limits and blob cleanup
"""
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from app.core.exceptions import BlobStoreError
from app.main import app
from app.services.blob_store import LocalBlobStore, get_blob_store

from conftest import pdf_file

API = "/api/v1"

# Smallest valid field set for every kind
MINIMAL_FIELDS = {
    "documents": {"title": "Curriculum Vitae"},
    "awards": {"title": "Best Teacher", "date_received": "2023-11-02"},
    "patents": {"title": "Solar Dryer", "patent_number": "IN-2023-0042"},
    "reviews": {"reviewer_name": "Dr. Rao", "review_type": "Journal"},
    "experiences": {"role_title": "Associate Professor"},
    "workshops": {"title": "Deep Learning Bootcamp", "date_conducted": "2024-02-10"},
    "research-work": {"title": "Graph Sparsifiers", "type": "Other"},
    "talks": {"name": "Keynote", "talk_date": "2024-06-01"},
    "teaching-contributions": {"course_name": "Compilers", "students_registered": "64"},
}


class FailingDeleteStore(LocalBlobStore):
    """Local store whose deletes always fail"""

    async def delete(self, storage_ref: str) -> None:
        raise BlobStoreError(storage_ref, "simulated delete failure")


async def create_record(client: AsyncClient, headers: dict, slug: str = "awards",
                        fields: dict = None, files: list = None):
    return await client.post(
        f"{API}/{slug}",
        data=fields if fields is not None else MINIMAL_FIELDS[slug],
        files=files if files is not None else [pdf_file()],
        headers=headers,
    )


class TestCreateRecord:
    """Test record creation"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("slug", list(MINIMAL_FIELDS))
    async def test_create_every_kind(self, client: AsyncClient, auth_headers, test_user, slug):
        """Each kind accepts its minimal fields plus one file"""
        response = await create_record(client, auth_headers, slug)

        assert response.status_code == 201
        data = response.json()
        assert data["owner_id"] == str(test_user.id)
        assert len(data["attachments"]) == 1
        assert data["attachments"][0]["original_name"] == "evidence.pdf"

    @pytest.mark.asyncio
    async def test_attachment_count_matches_uploads(self, client: AsyncClient, auth_headers):
        files = [pdf_file(f"page-{i}.pdf", f"content {i}".encode()) for i in range(3)]

        response = await create_record(client, auth_headers, files=files)

        assert response.status_code == 201
        attachments = response.json()["attachments"]
        assert [a["original_name"] for a in attachments] == ["page-0.pdf", "page-1.pdf", "page-2.pdf"]

        for i, attachment in enumerate(attachments):
            download = await client.get(
                f"{API}/awards/download/{attachment['storage_ref']}", headers=auth_headers
            )
            assert download.status_code == 200
            assert download.content == f"content {i}".encode()

    @pytest.mark.asyncio
    async def test_coercions_applied(self, client: AsyncClient, auth_headers):
        response = await create_record(client, auth_headers, "teaching-contributions")

        fields = response.json()["fields"]
        assert fields["students_registered"] == 64
        assert fields["mode_of_delivery"] == "Online"

    @pytest.mark.asyncio
    async def test_create_without_files(self, client: AsyncClient, auth_headers):
        response = await client.post(
            f"{API}/documents", data={"title": "CV"}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_ATTACHMENT"

    @pytest.mark.asyncio
    async def test_missing_required_field(self, client: AsyncClient, auth_headers):
        response = await create_record(client, auth_headers, "patents", fields={"title": "Solar Dryer"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["field"] == "patent_number"

    @pytest.mark.asyncio
    async def test_research_journal_requires_journal_name(self, client: AsyncClient, auth_headers):
        fields = {"title": "Graph Sparsifiers", "type": "Journal", "publication_date": "2024-01-05"}

        response = await create_record(client, auth_headers, "research-work", fields=fields)

        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "journal_name"

    @pytest.mark.asyncio
    async def test_research_other_without_journal_name(self, client: AsyncClient, auth_headers):
        fields = {"title": "Graph Sparsifiers", "type": "Other", "publication_date": "2024-01-05"}

        response = await create_record(client, auth_headers, "research-work", fields=fields)

        assert response.status_code == 201
        assert "journal_name" not in response.json()["fields"]

    @pytest.mark.asyncio
    async def test_text_file_rejected(self, client: AsyncClient, auth_headers):
        files = [("files", ("notes.txt", b"plain text", "text/plain"))]

        response = await create_record(client, auth_headers, files=files)

        assert response.status_code == 415
        assert response.json()["error"]["code"] == "UNSUPPORTED_MEDIA_TYPE"

        listing = await client.get(f"{API}/awards", headers=auth_headers)
        assert listing.json() == []

    @pytest.mark.asyncio
    async def test_eleven_mib_file_rejected(self, client: AsyncClient, auth_headers):
        files = [pdf_file("huge.pdf", b"x" * (11 * 1024 * 1024))]

        response = await create_record(client, auth_headers, files=files)

        assert response.status_code == 413
        assert response.json()["error"]["code"] == "PAYLOAD_TOO_LARGE"

        listing = await client.get(f"{API}/awards", headers=auth_headers)
        assert listing.json() == []

    @pytest.mark.asyncio
    async def test_too_many_files(self, client: AsyncClient, auth_headers):
        files = [pdf_file(f"f{i}.pdf") for i in range(6)]

        response = await create_record(client, auth_headers, files=files)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TOO_MANY_FILES"

    @pytest.mark.asyncio
    async def test_file_under_other_field_name_rejected(self, client: AsyncClient, auth_headers, blob_store):
        files = [("evidence", ("letter.pdf", b"%PDF-1.4", "application/pdf"))]

        response = await create_record(client, auth_headers, files=files)

        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "evidence"
        assert list(blob_store.root.iterdir()) == []
        assert (await client.get(f"{API}/awards", headers=auth_headers)).json() == []

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        response = await create_record(client, {})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(f"{API}/awards", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"


class TestListRecords:
    """Test listing records"""

    @pytest.mark.asyncio
    async def test_round_trip(self, client: AsyncClient, auth_headers):
        fields = {"title": "Solar Dryer", "patent_number": "IN-2023-0042", "date_filed": "2023-03-09"}
        files = [pdf_file("claims.pdf", b"claims"), pdf_file("drawings.pdf", b"drawings!")]
        await create_record(client, auth_headers, "patents", fields=fields, files=files)

        response = await client.get(f"{API}/patents", headers=auth_headers)

        assert response.status_code == 200
        records = response.json()
        assert len(records) == 1
        assert records[0]["fields"] == {**fields, "status": "Pending"}
        assert [(a["original_name"], a["size_bytes"]) for a in records[0]["attachments"]] == [
            ("claims.pdf", 6),
            ("drawings.pdf", 9),
        ]

    @pytest.mark.asyncio
    async def test_only_own_records_of_the_kind(self, client: AsyncClient, auth_headers, other_auth_headers):
        await create_record(client, auth_headers, "awards")
        await create_record(client, auth_headers, "talks")
        await create_record(client, other_auth_headers, "awards")

        response = await client.get(f"{API}/awards", headers=auth_headers)

        assert len(response.json()) == 1
        assert response.json()[0]["kind"] == "award"


class TestUpdateRecord:
    """Test record updates"""

    @pytest.mark.asyncio
    async def test_update_fields_keeps_attachments(self, client: AsyncClient, auth_headers):
        created = (await create_record(client, auth_headers)).json()

        response = await client.put(
            f"{API}/awards/{created['id']}",
            data={"title": "Best Researcher", "date_received": "2024-01-01"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["fields"]["title"] == "Best Researcher"
        assert data["attachments"] == created["attachments"]

    @pytest.mark.asyncio
    async def test_update_with_json_body(self, client: AsyncClient, auth_headers):
        created = (await create_record(client, auth_headers, "documents")).json()

        response = await client.put(
            f"{API}/documents/{created['id']}",
            json={"title": "CV 2024", "description": "updated"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["fields"] == {"title": "CV 2024", "description": "updated"}

    @pytest.mark.asyncio
    async def test_update_replaces_files(self, client: AsyncClient, auth_headers, blob_store):
        created = (await create_record(client, auth_headers)).json()
        old_ref = created["attachments"][0]["storage_ref"]

        response = await client.put(
            f"{API}/awards/{created['id']}",
            data=MINIMAL_FIELDS["awards"],
            files=[pdf_file("new-1.pdf", b"new one"), pdf_file("new-2.pdf", b"new two")],
            headers=auth_headers,
        )

        assert response.status_code == 200
        attachments = response.json()["attachments"]
        assert [a["original_name"] for a in attachments] == ["new-1.pdf", "new-2.pdf"]
        assert not (blob_store.root / old_ref).exists()

        old = await client.get(f"{API}/awards/download/{old_ref}", headers=auth_headers)
        assert old.status_code == 404

    @pytest.mark.asyncio
    async def test_update_succeeds_when_blob_cleanup_fails(self, client: AsyncClient, auth_headers, tmp_path):
        failing_store = FailingDeleteStore(tmp_path / "failing")
        app.dependency_overrides[get_blob_store] = lambda: failing_store

        created = (await create_record(client, auth_headers)).json()
        old_ref = created["attachments"][0]["storage_ref"]

        response = await client.put(
            f"{API}/awards/{created['id']}",
            data=MINIMAL_FIELDS["awards"],
            files=[pdf_file("replacement.pdf", b"replacement")],
            headers=auth_headers,
        )

        assert response.status_code == 200
        # The blob is still on disk but no record references it
        assert (failing_store.root / old_ref).exists()
        old = await client.get(f"{API}/awards/download/{old_ref}", headers=auth_headers)
        assert old.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_update_changes_nothing(self, client: AsyncClient, auth_headers):
        created = (await create_record(client, auth_headers, "patents")).json()

        response = await client.put(
            f"{API}/patents/{created['id']}",
            data={"title": "No number"},
            files=[pdf_file("replacement.pdf")],
            headers=auth_headers,
        )

        assert response.status_code == 400
        listing = (await client.get(f"{API}/patents", headers=auth_headers)).json()
        assert listing[0]["fields"]["patent_number"] == MINIMAL_FIELDS["patents"]["patent_number"]
        assert listing[0]["attachments"] == created["attachments"]

    @pytest.mark.asyncio
    async def test_update_json_rejects_structured_values(self, client: AsyncClient, auth_headers):
        created = (await create_record(client, auth_headers, "documents")).json()

        response = await client.put(
            f"{API}/documents/{created['id']}",
            json={"title": ["a", "b"], "description": {"k": 1}},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "title"
        listing = (await client.get(f"{API}/documents", headers=auth_headers)).json()
        assert listing[0]["fields"] == created["fields"]

    @pytest.mark.asyncio
    async def test_update_invalid_json(self, client: AsyncClient, auth_headers):
        created = (await create_record(client, auth_headers, "documents")).json()

        response = await client.put(
            f"{API}/documents/{created['id']}",
            content=b"{not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_unknown_record(self, client: AsyncClient, auth_headers):
        response = await client.put(
            f"{API}/awards/00000000-0000-0000-0000-000000000000",
            data=MINIMAL_FIELDS["awards"],
            headers=auth_headers,
        )

        assert response.status_code == 404


class TestDeleteRecord:
    """Test record deletion"""

    @pytest.mark.asyncio
    async def test_delete_removes_record_and_blobs(self, client: AsyncClient, auth_headers, blob_store):
        created = (await create_record(client, auth_headers)).json()
        ref = created["attachments"][0]["storage_ref"]

        response = await client.delete(f"{API}/awards/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]
        assert not (blob_store.root / ref).exists()
        assert (await client.get(f"{API}/awards", headers=auth_headers)).json() == []

    @pytest.mark.asyncio
    async def test_delete_twice(self, client: AsyncClient, auth_headers):
        created = (await create_record(client, auth_headers)).json()

        first = await client.delete(f"{API}/awards/{created['id']}", headers=auth_headers)
        second = await client.delete(f"{API}/awards/{created['id']}", headers=auth_headers)

        assert first.status_code == 200
        assert second.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_succeeds_when_blob_cleanup_fails(self, client: AsyncClient, auth_headers, tmp_path):
        app.dependency_overrides[get_blob_store] = lambda: FailingDeleteStore(tmp_path / "failing")
        created = (await create_record(client, auth_headers)).json()

        response = await client.delete(f"{API}/awards/{created['id']}", headers=auth_headers)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_delete_with_wrong_kind(self, client: AsyncClient, auth_headers):
        created = (await create_record(client, auth_headers, "awards")).json()

        response = await client.delete(f"{API}/talks/{created['id']}", headers=auth_headers)

        assert response.status_code == 404


class TestStoreFailures:
    """Database commit failures roll back and release the blobs just written"""

    @pytest.fixture
    def failing_commit(self, db_session, monkeypatch):
        async def commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        def install():
            monkeypatch.setattr(db_session, "commit", commit)
        return install

    @pytest.mark.asyncio
    async def test_create_failure_releases_new_blobs(self, client: AsyncClient, auth_headers,
                                                     blob_store, failing_commit):
        failing_commit()

        response = await create_record(client, auth_headers, files=[pdf_file("a.pdf"), pdf_file("b.pdf")])

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "RECORD_STORE_ERROR"
        assert error["details"]["operation"] == "create"
        assert list(blob_store.root.iterdir()) == []
        assert (await client.get(f"{API}/awards", headers=auth_headers)).json() == []

    @pytest.mark.asyncio
    async def test_update_failure_keeps_old_attachments(self, client: AsyncClient, auth_headers,
                                                        blob_store, failing_commit):
        created = (await create_record(client, auth_headers)).json()
        old_ref = created["attachments"][0]["storage_ref"]
        failing_commit()

        response = await client.put(
            f"{API}/awards/{created['id']}",
            data={"title": "Renamed"},
            files=[pdf_file("replacement.pdf", b"replacement")],
            headers=auth_headers,
        )

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "RECORD_STORE_ERROR"

        listing = (await client.get(f"{API}/awards", headers=auth_headers)).json()
        assert listing[0]["fields"] == created["fields"]
        assert listing[0]["attachments"] == created["attachments"]
        # Only the original blob is left on disk
        assert [p.name for p in blob_store.root.iterdir()] == [old_ref]


class TestOwnership:
    """Records are invisible to other users"""

    @pytest.mark.asyncio
    async def test_other_user_cannot_update(self, client: AsyncClient, auth_headers, other_auth_headers):
        created = (await create_record(client, auth_headers)).json()

        response = await client.put(
            f"{API}/awards/{created['id']}",
            data=MINIMAL_FIELDS["awards"],
            headers=other_auth_headers,
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_other_user_cannot_delete(self, client: AsyncClient, auth_headers, other_auth_headers):
        created = (await create_record(client, auth_headers)).json()

        response = await client.delete(f"{API}/awards/{created['id']}", headers=other_auth_headers)

        assert response.status_code == 404
        assert len((await client.get(f"{API}/awards", headers=auth_headers)).json()) == 1

    @pytest.mark.asyncio
    async def test_other_user_cannot_download(self, client: AsyncClient, auth_headers, other_auth_headers):
        created = (await create_record(client, auth_headers)).json()
        ref = created["attachments"][0]["storage_ref"]

        response = await client.get(f"{API}/awards/download/{ref}", headers=other_auth_headers)

        assert response.status_code == 404


class TestDownload:
    """Test attachment downloads"""

    @pytest.mark.asyncio
    async def test_download_headers(self, client: AsyncClient, auth_headers):
        files = [pdf_file("Award Letter.pdf", b"%PDF-1.4 letter")]
        created = (await create_record(client, auth_headers, files=files)).json()
        ref = created["attachments"][0]["storage_ref"]

        response = await client.get(f"{API}/awards/download/{ref}", headers=auth_headers)

        assert response.status_code == 200
        assert response.content == b"%PDF-1.4 letter"
        assert response.headers["content-type"] == "application/octet-stream"
        assert response.headers["content-disposition"] == 'attachment; filename="Award Letter.pdf"'

    @pytest.mark.asyncio
    async def test_download_non_ascii_name(self, client: AsyncClient, auth_headers):
        files = [pdf_file("résumé.pdf", b"cv")]
        created = (await create_record(client, auth_headers, "documents", files=files)).json()
        ref = created["attachments"][0]["storage_ref"]

        response = await client.get(f"{API}/documents/download/{ref}", headers=auth_headers)

        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in response.headers["content-disposition"]

    @pytest.mark.asyncio
    async def test_download_through_other_kind(self, client: AsyncClient, auth_headers):
        created = (await create_record(client, auth_headers, "awards")).json()
        ref = created["attachments"][0]["storage_ref"]

        response = await client.get(f"{API}/talks/download/{ref}", headers=auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_download_unknown_ref(self, client: AsyncClient, auth_headers):
        response = await client.get(f"{API}/awards/download/1700000000000-deadbeef-x.pdf", headers=auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_blob_missing_from_store(self, client: AsyncClient, auth_headers, blob_store):
        created = (await create_record(client, auth_headers)).json()
        ref = created["attachments"][0]["storage_ref"]
        (blob_store.root / ref).unlink()

        response = await client.get(f"{API}/awards/download/{ref}", headers=auth_headers)

        assert response.status_code == 404


class TestKinds:
    """Test the kind catalogue endpoint"""

    @pytest.mark.asyncio
    async def test_list_kinds(self, client: AsyncClient):
        response = await client.get(f"{API}/kinds")

        assert response.status_code == 200
        slugs = [k["slug"] for k in response.json()]
        assert slugs == list(MINIMAL_FIELDS)

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_response_headers(self, client: AsyncClient, auth_headers):
        response = await client.get(
            f"{API}/awards", headers={**auth_headers, "X-Request-ID": "req-1234"}
        )

        assert response.headers["x-request-id"] == "req-1234"
        assert response.headers["x-response-time"].endswith("ms")
        assert response.headers["x-content-type-options"] == "nosniff"
