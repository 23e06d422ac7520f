import base64

import pytest
from fastapi.testclient import TestClient

from app.container import get_fetch_use_case, get_identify_use_case, get_leaflet_use_case
from app.domain.errors import IdentificationError
from app.domain.models import (
    AnsweredQuestion, LeafletChunk, LeafletFetchResult, MedicineIdentity,
    RegulatoryDocument, SearchResultCandidate,
)
from main import app

PDF = b"%PDF-1.4 fake"
PDF_B64 = base64.b64encode(PDF).decode()


class _FetchUC:
    def __init__(self, result):
        self.result = result
        self.seen = None

    async def execute(self, identity):
        self.seen = identity
        return self.result


class _LeafletUC:
    async def process(self, pdf_bytes):
        assert pdf_bytes == PDF
        return {"success": True, "documentCount": 7, "message": "ok"}

    async def query(self, pdf_bytes, question):
        return AnsweredQuestion(
            question=question,
            answer_text="Tomar 1 comprimido (página 3).",
            cited_pages=[1, 3],
            source_chunks=[LeafletChunk("Posologia", 3), LeafletChunk("Indicacoes", 1)],
            mentioned_pages=[3],
        )

    async def overview(self, pdf_bytes):
        return await self.query(pdf_bytes, "overview")


class _IdentifyUC:
    def __init__(self, error=None):
        self.error = error

    async def execute(self, image_b64, mime="image/jpeg"):
        if self.error:
            raise self.error
        return MedicineIdentity(name="Ben-u-ron", brand="Bene", active_substance="Paracetamol", dosage="500 mg")


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_fetch_found(client):
    match = SearchResultCandidate("Ben-u-ron", "Paracetamol", 0, 1.0, 1.0, 1.0)
    uc = _FetchUC(LeafletFetchResult(
        status="found", document=RegulatoryDocument(PDF), match=match,
        tier=1, attempts=1, message="Documento encontrado para Ben-u-ron.",
    ))
    app.dependency_overrides[get_fetch_use_case] = lambda: uc

    res = client.post("/v1/leaflet/fetch", json={"name": "Ben-u-ron", "activeSubstance": "Paracetamol", "dosage": "500 mg"})
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "found"
    assert base64.b64decode(body["document"]) == PDF
    assert body["contentType"] == "application/pdf"
    assert body["documentKind"] == "RCM"
    assert body["match"]["displayName"] == "Ben-u-ron"
    assert body["lowConfidence"] is False
    assert uc.seen.active_substance == "Paracetamol"


def test_fetch_not_found(client):
    app.dependency_overrides[get_fetch_use_case] = lambda: _FetchUC(
        LeafletFetchResult(status="not_found", attempts=4, message="nada")
    )
    body = client.post("/v1/leaflet/fetch", json={"name": "Xpto"}).json()
    assert body["status"] == "not_found"
    assert body["document"] is None
    assert body["attempts"] == 4


def test_process_and_query(client):
    app.dependency_overrides[get_leaflet_use_case] = lambda: _LeafletUC()

    body = client.post("/v1/leaflet/process", json={"pdfBase64": PDF_B64}).json()
    assert body == {"success": True, "documentCount": 7, "message": "ok", "error": None}

    body = client.post("/v1/leaflet/query", json={"pdfBase64": PDF_B64, "question": "Dose?"}).json()
    assert body["success"] is True
    assert body["citedPages"] == [1, 3]
    assert body["mentionedPages"] == [3]
    assert body["sourceCount"] == 2
    assert body["sources"][0] == {"pageNumber": 3, "text": "Posologia"}


def test_overview(client):
    app.dependency_overrides[get_leaflet_use_case] = lambda: _LeafletUC()
    body = client.post("/v1/leaflet/overview", json={"pdfBase64": PDF_B64}).json()
    assert body["citedPages"] == [1, 3]


def test_query_rejects_bad_payload(client):
    app.dependency_overrides[get_leaflet_use_case] = lambda: _LeafletUC()
    assert client.post("/v1/leaflet/query", json={"pdfBase64": "@@@", "question": "x"}).status_code == 422
    assert client.post("/v1/leaflet/query", json={"pdfBase64": PDF_B64, "question": ""}).status_code == 422


def test_identify_json(client):
    app.dependency_overrides[get_identify_use_case] = lambda: _IdentifyUC()
    img = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()
    body = client.post("/v1/identify", json={"image": img}).json()
    assert body["name"] == "Ben-u-ron"
    assert body["activeSubstance"] == "Paracetamol"


def test_identify_failure_is_localized_422(client):
    app.dependency_overrides[get_identify_use_case] = lambda: _IdentifyUC(IdentificationError("no JSON"))
    img = base64.b64encode(b"jpeg bytes").decode()
    res = client.post("/v1/identify", json={"image": img})
    assert res.status_code == 422
    assert "identificar" in res.json()["detail"]


def test_identify_photo_rejects_non_image(client):
    app.dependency_overrides[get_identify_use_case] = lambda: _IdentifyUC()
    res = client.post("/v1/identify-photo", files={"img": ("x.jpg", b"not an image", "image/jpeg")})
    assert res.status_code == 400
