"""
Tests de configuración: carga desde el entorno, duraciones y validate-env.
"""

import json

import pytest

from clinica_citas.config import DEFAULT_CORS_ORIGINS, Settings, duration_to_seconds, validar_entorno
from clinica_citas.errors import ConfigurationError

ENV_DEV = {
    "EMAIL_USER": "notificaciones@example.com",
    "EMAIL_PASS": "password-largo",
    "JWT_SECRET": "x" * 40,
    "CLINIC_NAME": "Clínica Caracas",
    "CLINIC_EMAIL": "clinica@example.com",
    "CLINIC_PHONE": "+58 212 555 0000",
}


@pytest.mark.parametrize(
    "value,expected",
    [("24h", 86400), ("30m", 1800), ("7d", 604800), ("45s", 45), ("3600", 3600), (" 2h ", 7200), (10, 10)],
)
def test_duration_to_seconds(value, expected):
    assert duration_to_seconds(value) == expected


@pytest.mark.parametrize("value", ["", "h", "1w", "-5m", "diez"])
def test_duration_invalid(value):
    with pytest.raises(ConfigurationError):
        duration_to_seconds(value)


class TestSettings:
    def test_defaults(self):
        s = Settings.from_env({})

        assert s.environment == "development"
        assert s.port == 3000
        assert s.jwt_expires_in == "24h"
        assert s.jwt_expires_seconds == 86400
        assert s.email_host == "smtp.gmail.com"
        assert s.email_port == 465
        assert s.cors_allowed_origins == DEFAULT_CORS_ORIGINS
        assert s.rate_limit_window_seconds == 900
        assert s.rate_limit_max_general == 100
        assert s.rate_limit_max_citas == 10
        assert s.api_keys == ()
        assert s.is_production is False

    def test_from_env(self):
        s = Settings.from_env(
            {
                **ENV_DEV,
                "ENVIRONMENT": "Production",
                "PORT": "8080",
                "JWT_EXPIRES_IN": "1h",
                "API_KEYS": "a, b ,,c",
                "CORS_ALLOWED_ORIGINS": "https://clinica.example.com",
                "RATE_LIMIT_WINDOW_MS": "60000",
                "RATE_LIMIT_MAX_CITAS": "3",
                "LOG_LEVEL": "debug",
            }
        )

        assert s.is_production is True
        assert s.port == 8080
        assert s.jwt_expires_seconds == 3600
        assert s.api_keys == ("a", "b", "c")
        assert s.cors_allowed_origins == ("https://clinica.example.com",)
        assert s.rate_limit_window_seconds == 60
        assert s.rate_limit_max_citas == 3
        assert s.log_level == "DEBUG"

    def test_bad_int_falls_back(self):
        s = Settings.from_env({"PORT": "abc", "RATE_LIMIT_MAX_GENERAL": "muchas"})
        assert s.port == 3000
        assert s.rate_limit_max_general == 100

    def test_empty_secrets_are_none(self):
        s = Settings.from_env({"JWT_SECRET": "", "ENCRYPTION_KEY": ""})
        assert s.jwt_secret is None
        assert s.encryption_key is None

    def test_check_startup(self):
        Settings.from_env(ENV_DEV).check_startup()

        with pytest.raises(ConfigurationError, match="EMAIL_PASS, JWT_SECRET"):
            Settings.from_env({"EMAIL_USER": "a@b.com"}).check_startup()


class TestValidarEntorno:
    def test_development_ok(self):
        rep = validar_entorno(ENV_DEV, "development")

        assert rep.ok
        assert rep.environment == "development"
        assert any(line.startswith("OK    EMAIL_USER") for line in rep.lines)
        # secretos enmascarados
        assert "x" * 40 not in "\n".join(rep.lines)
        assert rep.warnings

    def test_missing_required(self):
        rep = validar_entorno({}, "development")

        assert not rep.ok
        assert "JWT_SECRET: FALTANTE" in rep.errors

    def test_production_requires_more(self):
        rep = validar_entorno(ENV_DEV, "production")

        assert "VALID_CLIENT_CREDENTIALS: FALTANTE (requerida en producción)" in rep.errors
        assert "ENCRYPTION_KEY: FALTANTE (requerida en producción)" in rep.errors

    def test_production_checks(self):
        env = {
            **ENV_DEV,
            "JWT_SECRET": "corto",
            "ENCRYPTION_KEY": "k",
            "VALID_CLIENT_CREDENTIALS": "[]",
            "CORS_ALLOWED_ORIGINS": "http://localhost:3000",
        }
        rep = validar_entorno(env, "production")

        assert any("Demasiado corto" in e for e in rep.errors)
        assert "VALID_CLIENT_CREDENTIALS: Debe ser un array JSON no vacío" in rep.errors
        assert any("HTTPS" in w for w in rep.warnings)

    def test_production_valid(self):
        env = {
            **ENV_DEV,
            "ENCRYPTION_KEY": "k" * 32,
            "VALID_CLIENT_CREDENTIALS": json.dumps([{"clientId": "a", "clientSecret": "b"}]),
        }
        rep = validar_entorno(env, "production")

        assert rep.ok
        assert "OK    VALID_CLIENT_CREDENTIALS: 1 credenciales configuradas" in rep.lines

    def test_invalid_json_credentials(self):
        rep = validar_entorno({**ENV_DEV, "ENCRYPTION_KEY": "k", "VALID_CLIENT_CREDENTIALS": "{"}, "production")
        assert "VALID_CLIENT_CREDENTIALS: Formato JSON inválido" in rep.errors

    def test_email_checks(self):
        rep = validar_entorno({**ENV_DEV, "EMAIL_USER": "sin-arroba", "EMAIL_PASS": "corta"})

        assert "EMAIL_USER: Formato de email inválido" in rep.errors
        assert "EMAIL_PASS: Contraseña demasiado corta" in rep.errors

    def test_environment_from_env(self):
        assert validar_entorno({**ENV_DEV, "ENVIRONMENT": "production"}).environment == "production"
