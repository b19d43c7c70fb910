import base64

import pytest
from fastapi.testclient import TestClient

from app.api.http import create_app
from app.config import AppConfig

PERSONAL = ["rg", "cpf", "photo", "proofOfResidence"]
PROFESSIONAL = ["crm", "curriculum", "criminalRecord", "ethicalRecord", "debtRecord", "graduationCertificate"]


@pytest.fixture
def client(tmp_path):
    config = AppConfig(
        database_url="sqlite:///:memory:",
        storage_dir=str(tmp_path / "storage"),
        public_base_url="http://testserver",
        env="dev",
    )
    with TestClient(create_app(config)) as test_client:
        yield test_client


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def pdf_payload(name="doc.pdf", content=b"%PDF-1.4 teste"):
    return {"file_name": name, "content_type": "application/pdf", "content_base64": b64(content)}


def register_doctor(client, email="medico@clinica.com"):
    wizard_id = client.post("/register").json()["wizard_id"]
    client.post(f"/register/{wizard_id}/role", json={"role": "doctor"})
    client.post(f"/register/{wizard_id}/details", json={"name": "Dr. João", "crm": "CRM 12345"})
    return client.post(
        f"/register/{wizard_id}/submit",
        json={"email": email, "password": "segredo1", "confirm_password": "segredo1"},
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert "X-Request-ID" in response.headers


def test_registration_flow(client):
    start = client.post("/register").json()
    wizard_id = start["wizard_id"]
    assert start["step"] == 0
    assert start["step_labels"] == ["Seleção", "Dados", "Credenciais"]

    response = client.post(f"/register/{wizard_id}/role", json={"role": "doctor"})
    assert response.status_code == 200
    assert response.json()["step"] == 1

    response = client.post(f"/register/{wizard_id}/details", json={"name": "Dr. João", "crm": "123"})
    assert response.status_code == 400
    assert response.json()["step"] == 1
    assert response.json()["toasts"][0]["title"] == "CRM inválido"

    response = client.post(f"/register/{wizard_id}/details", json={"name": "Dr. João", "crm": "CRM 12345"})
    assert response.json()["step"] == 2

    response = client.post(
        f"/register/{wizard_id}/submit",
        json={"email": "medico@clinica.com", "password": "segredo1", "confirm_password": "outra"},
    )
    assert response.status_code == 400
    assert response.json()["toasts"][0]["title"] == "Senhas não coincidem"

    response = client.post(
        f"/register/{wizard_id}/submit",
        json={"email": "medico@clinica.com", "password": "segredo1", "confirm_password": "segredo1"},
    )
    body = response.json()
    assert response.status_code == 200
    assert body["completed"] is True
    assert body["redirect_to"] == "/dashboard"
    assert body["session_token"]
    assert body["toasts"][0]["title"] == "Cadastro realizado com sucesso"

    # Formulário destruído após o cadastro
    assert client.post(f"/register/{wizard_id}/back").status_code == 404


def test_duplicate_email_is_reported(client):
    register_doctor(client)

    response = register_doctor(client)

    assert response.status_code == 502
    assert response.json()["toasts"][0]["description"] == "Este email já está registrado."
    assert response.json()["step"] == 2


def test_profile_requires_session(client):
    assert client.get("/profile").status_code == 401
    assert client.get("/profile", headers={"X-Session-Token": "nope"}).status_code == 401


def test_profile_and_documents_flow(client):
    body = register_doctor(client).json()
    headers = {"X-Session-Token": body["session_token"]}
    user_id = body["user_id"]

    profile = client.get("/profile", headers=headers).json()
    assert profile["personal"]["name"] == "Dr. João"
    assert profile["professional"]["crm"] == "CRM 12345"

    response = client.put("/profile/financial", json={"bank": "001", "hourly_rate": 180}, headers=headers)
    assert response.status_code == 200
    assert response.json()["toasts"][0]["title"] == "Informações financeiras salvas"

    response = client.put(
        "/profile/documents/rg",
        json={"file_name": "rg.txt", "content_type": "text/plain", "content_base64": b64(b"texto")},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["toasts"][0]["title"] == "Formato inválido"

    for key in PERSONAL:
        assert client.put(f"/profile/documents/{key}", json=pdf_payload(), headers=headers).status_code == 200
    assert client.post("/profile/documents/next", headers=headers).json()["step"] == 1

    response = client.post("/profile/documents/finish", headers=headers)
    assert response.status_code == 400
    assert response.json()["toasts"][0]["title"] == "Documentos obrigatórios"

    for key in PROFESSIONAL:
        client.put(f"/profile/documents/{key}", json=pdf_payload(), headers=headers)
    response = client.post("/profile/documents/finish", headers=headers)
    assert response.status_code == 200
    assert response.json()["completed"] is True
    assert response.json()["step"] == 0

    checklist = client.get("/profile/documents", headers=headers).json()
    assert checklist["groups"][0]["missing"] == PERSONAL

    stored = client.get(f"/files/documents/{user_id}/rg", headers=headers)
    assert stored.status_code == 200
    assert stored.content == b"%PDF-1.4 teste"


def test_invalid_base64_is_rejected(client):
    headers = {"X-Session-Token": register_doctor(client).json()["session_token"]}

    response = client.put(
        "/profile/documents/rg",
        json={"file_name": "rg.pdf", "content_type": "application/pdf", "content_base64": "@@@"},
        headers=headers,
    )

    assert response.status_code == 400


def test_files_of_other_users_are_forbidden(client):
    headers = {"X-Session-Token": register_doctor(client).json()["session_token"]}

    assert client.get("/files/documents/someone-else/rg", headers=headers).status_code == 403


def test_logout_invalidates_session(client):
    headers = {"X-Session-Token": register_doctor(client).json()["session_token"]}
    client.get("/profile", headers=headers)

    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/profile", headers=headers).status_code == 401

    login = client.post("/auth/login", json={"email": "medico@clinica.com", "password": "segredo1"})
    assert login.status_code == 200
    assert client.post("/auth/login", json={"email": "medico@clinica.com", "password": "x"}).status_code == 401


def test_files_require_api_key_when_configured(tmp_path):
    config = AppConfig(
        database_url="sqlite:///:memory:",
        storage_dir=str(tmp_path / "storage"),
        bot_api_key="chave-secreta",
        env="dev",
    )
    api_key = {"X-API-KEY": "chave-secreta"}
    with TestClient(create_app(config)) as client:
        wizard_id = client.post("/register", headers=api_key).json()["wizard_id"]
        client.post(f"/register/{wizard_id}/role", json={"role": "doctor"}, headers=api_key)
        client.post(
            f"/register/{wizard_id}/details", json={"name": "Dr. João", "crm": "CRM 12345"}, headers=api_key
        )
        body = client.post(
            f"/register/{wizard_id}/submit",
            json={"email": "medico@clinica.com", "password": "segredo1", "confirm_password": "segredo1"},
            headers=api_key,
        ).json()
        headers = {"X-Session-Token": body["session_token"], **api_key}
        client.put("/profile/documents/rg", json=pdf_payload(), headers=headers)
        client.post("/profile/documents/submit", headers=headers)
        path = f"/files/documents/{body['user_id']}/rg"

        assert client.get(path, headers=headers).status_code == 200
        assert client.get(path, headers={"X-Session-Token": body["session_token"]}).status_code == 401
