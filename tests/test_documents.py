"""
RentHive - Property Document Tests
"""

import pytest
from httpx import AsyncClient

from renthive.services.document_service import document_folder


def test_document_folder():
    assert document_folder("u1", "p1", "Tenancy Agreement") == "u1/p1/documents/tenancy-agreement/"
    assert document_folder("u1", "p1") == "u1/p1/documents/general/"


@pytest.mark.anyio
async def test_upload_and_list(client: AsyncClient, prop, owner, local_storage):
    response = await client.post(
        "/api/documents/upload",
        params={"propertyId": prop["id"], "documentType": "Lease"},
        files={"document": ("Tenancy Agreement.pdf", b"%PDF-1.4 lease", "application/pdf")},
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["documentType"] == "lease"
    assert data["originalName"] == "Tenancy Agreement.pdf"
    assert data["size"] == len(b"%PDF-1.4 lease")
    assert data["path"].startswith(f"{owner.id}/{prop['id']}/documents/lease/tenancy-agreement-")
    assert await local_storage.download(data["path"]) == b"%PDF-1.4 lease"

    await client.post(
        "/api/documents/upload",
        params={"propertyId": prop["id"]},
        files={"document": ("receipt.txt", b"paid", "text/plain")},
    )

    response = await client.get(f"/api/documents/property/{prop['id']}")
    assert response.status_code == 200
    groups = {g["documentType"]: g["documents"] for g in response.json()["data"]}
    assert set(groups) == {"general", "lease"}
    assert groups["lease"][0]["path"] == data["path"]
    assert groups["general"][0]["metadata"]["size"] == 4


@pytest.mark.anyio
async def test_upload_multiple(client: AsyncClient, prop):
    files = [
        ("documents", ("a.pdf", b"%PDF a", "application/pdf")),
        ("documents", ("b.csv", b"x,y", "text/csv")),
    ]
    response = await client.post("/api/documents/upload-multiple", params={"propertyId": prop["id"]}, files=files)
    assert response.status_code == 201
    assert response.json()["message"] == "2 documents uploaded successfully"


@pytest.mark.anyio
async def test_upload_validation(client: AsyncClient, prop, monkeypatch, settings):
    response = await client.post(
        "/api/documents/upload",
        params={"propertyId": prop["id"]},
        files={"document": ("virus.exe", b"MZ", "application/octet-stream")},
    )
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid file type. Allowed types: csv, doc, docx")

    response = await client.post(
        "/api/documents/upload",
        files={"document": ("a.pdf", b"%PDF", "application/pdf")},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Property ID is required"

    monkeypatch.setattr(settings, "max_document_size_mb", 0)
    response = await client.post(
        "/api/documents/upload",
        params={"propertyId": prop["id"]},
        files={"document": ("a.pdf", b"%PDF", "application/pdf")},
    )
    assert response.status_code == 413


@pytest.mark.anyio
async def test_upload_requires_a_file(client: AsyncClient, prop):
    response = await client.post("/api/documents/upload", params={"propertyId": prop["id"]})
    assert response.status_code == 400
    assert response.json()["error"] == "No file uploaded"


@pytest.mark.anyio
async def test_strangers_cannot_upload(client: AsyncClient, prop, stranger, login):
    login(stranger)
    response = await client.post(
        "/api/documents/upload",
        params={"propertyId": prop["id"]},
        files={"document": ("a.pdf", b"%PDF", "application/pdf")},
    )
    assert response.status_code == 404


@pytest.mark.anyio
async def test_delete_document(client: AsyncClient, shared_prop, owner, tenant, login, local_storage):
    data = (await client.post(
        "/api/documents/upload",
        params={"propertyId": shared_prop["id"]},
        files={"document": ("a.pdf", b"%PDF", "application/pdf")},
    )).json()["data"]

    login(tenant)
    response = await client.delete(f"/api/documents/{data['path']}")
    assert response.status_code == 403

    response = await client.delete("/api/documents/not/a/real/path")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid document path"

    login(owner)
    response = await client.delete(f"/api/documents/{data['path']}")
    assert response.status_code == 200
    assert not await local_storage.exists(data["path"])
