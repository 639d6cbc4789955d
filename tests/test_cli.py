"""
Tests de la CLI (validate-env, encrypt, token).
"""

import pytest
from jose import jwt

from clinica_citas.cli import main
from clinica_citas.encryption import decrypt

ENV_DEV = {
    "EMAIL_USER": "notificaciones@example.com",
    "EMAIL_PASS": "password-largo",
    "JWT_SECRET": "y" * 40,
    "CLINIC_NAME": "Clínica Caracas",
    "CLINIC_EMAIL": "clinica@example.com",
    "CLINIC_PHONE": "+58 212 555 0000",
}


@pytest.fixture
def dev_env(monkeypatch):
    for name, value in ENV_DEV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.delenv("ENVIRONMENT", raising=False)


def test_encrypt(capsys):
    assert main(["encrypt", "landing", "--key", "clave"]) == 0

    out = capsys.readouterr().out.strip()
    assert decrypt(out, "clave") == "landing"


def test_encrypt_without_key(capsys, monkeypatch):
    monkeypatch.delenv("ENCRYPTION_KEY", raising=False)

    assert main(["encrypt", "landing"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_validate_env_ok(dev_env, capsys):
    assert main(["validate-env", "development"]) == 0

    out = capsys.readouterr().out
    assert "Configuración VÁLIDA para el ambiente: development" in out


def test_validate_env_missing(dev_env, monkeypatch, capsys):
    monkeypatch.delenv("JWT_SECRET")

    assert main(["validate-env"]) == 1
    out = capsys.readouterr().out
    assert "ERROR JWT_SECRET: FALTANTE" in out
    assert "INCOMPLETA" in out


def test_token(dev_env, capsys):
    assert main(["token", "--client-id", "landing"]) == 0

    token = capsys.readouterr().out.strip()
    assert jwt.decode(token, "y" * 40, algorithms=["HS256"])["clientId"] == "landing"


def test_token_without_secret(dev_env, monkeypatch, capsys):
    monkeypatch.setenv("JWT_SECRET", "")

    assert main(["token", "--client-id", "landing"]) == 1
    assert "JWT_SECRET" in capsys.readouterr().err
