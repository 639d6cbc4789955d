"""
Fixtures comunes: configuración de prueba, adaptadores falsos y TestClient.
"""

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from clinica_citas.api_main import create_app
from clinica_citas.config import Settings
from clinica_citas.notifications import EmailService
from clinica_citas.repository import InMemoryCitaRepository

TEST_JWT_SECRET = "test-secret-con-mas-de-32-caracteres-0123456789"
TEST_ENCRYPTION_KEY = "clave-de-cifrado-de-prueba"


@pytest.fixture
def test_settings():
    """Configuración de desarrollo con todos los secretos presentes"""
    return Settings(
        environment="development",
        jwt_secret=TEST_JWT_SECRET,
        jwt_expires_in="24h",
        encryption_key=TEST_ENCRYPTION_KEY,
        clinic_name="Clínica Caracas",
        clinic_email="clinica@example.com",
        clinic_phone="+58 212 555 0000",
        email_user="notificaciones@example.com",
        email_pass="password-de-prueba",
    )


@pytest.fixture
def repository():
    return InMemoryCitaRepository()


@pytest.fixture
def email_service():
    """EmailService falso: ambos envíos son AsyncMock"""
    service = AsyncMock(spec=EmailService)
    service.enviar_email_cita.return_value = None
    service.enviar_email_confirmacion.return_value = None
    return service


@pytest.fixture
def valid_datos():
    return {
        "name": "Jo",
        "email": "jo@x.com",
        "phone": "1234567890",
        "service": "cardiologia",
    }


@pytest.fixture
def app(test_settings, repository, email_service):
    return create_app(test_settings, repository=repository, email_service=email_service)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client):
    """Cabecera Authorization con un token recién emitido"""
    response = client.post("/api/auth/token", json={"clientId": "landing", "clientSecret": "s3cret"})
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}
