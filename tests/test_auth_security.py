"""
Tests de emisión y verificación de tokens JWT y del allow-list de clientes.
"""

import json
import time
from dataclasses import replace
from datetime import timedelta

import pytest
from jose import jwt

from clinica_citas.auth_security import (
    JWT_ALG,
    create_client_token,
    decode_token,
    load_client_credentials,
    verify_client_credentials,
)
from clinica_citas.errors import ConfigurationError, TokenExpiredError, TokenInvalidError

CREDENCIALES = json.dumps([{"clientId": "landing", "clientSecret": "s3cret"}])


class TestTokens:
    def test_round_trip(self, test_settings):
        token = create_client_token("landing", test_settings)
        payload = decode_token(token, test_settings)

        assert payload["clientId"] == "landing"
        assert payload["role"] == "client"
        assert payload["timestamp"].endswith("Z")
        assert payload["exp"] - payload["iat"] == 24 * 3600

    def test_custom_lifetime(self, test_settings):
        settings = replace(test_settings, jwt_expires_in="30m")
        payload = decode_token(create_client_token("landing", settings), settings)
        assert payload["exp"] - payload["iat"] == 30 * 60

    def test_expired_token(self, test_settings):
        token = create_client_token("landing", test_settings, expires_delta=timedelta(seconds=0))
        time.sleep(1.1)
        with pytest.raises(TokenExpiredError, match="Token expirado"):
            decode_token(token, test_settings)

    def test_wrong_secret(self, test_settings):
        token = create_client_token("landing", test_settings)
        other = replace(test_settings, jwt_secret="otro-secreto")
        with pytest.raises(TokenInvalidError, match="Token inválido"):
            decode_token(token, other)

    @pytest.mark.parametrize("token", ["", "basura", "a.b.c"])
    def test_malformed_token(self, test_settings, token):
        with pytest.raises(TokenInvalidError):
            decode_token(token, test_settings)

    def test_other_algorithm_rejected(self, test_settings):
        token = jwt.encode({"clientId": "landing"}, test_settings.jwt_secret, algorithm="HS512")
        with pytest.raises(TokenInvalidError):
            decode_token(token, test_settings)

    def test_missing_secret(self, test_settings):
        settings = replace(test_settings, jwt_secret=None)
        with pytest.raises(ConfigurationError, match="JWT_SECRET"):
            create_client_token("landing", settings)
        with pytest.raises(ConfigurationError):
            decode_token("a.b.c", settings)

    def test_signed_with_hs256(self, test_settings):
        token = create_client_token("landing", test_settings)
        assert jwt.get_unverified_header(token)["alg"] == JWT_ALG


class TestClientCredentials:
    def test_development_accepts_any_pair(self, test_settings):
        settings = replace(test_settings, valid_client_credentials=CREDENCIALES)
        assert verify_client_credentials("cualquiera", "cosa", settings) is True

    @pytest.mark.parametrize("cid,secret", [("", "s3cret"), ("landing", ""), (None, None)])
    def test_empty_values_rejected(self, test_settings, cid, secret):
        assert verify_client_credentials(cid, secret, test_settings) is False

    def test_production_without_list_accepts(self, test_settings):
        settings = replace(test_settings, environment="production")
        assert verify_client_credentials("landing", "x", settings) is True

    def test_production_checks_list(self, test_settings):
        settings = replace(test_settings, environment="production", valid_client_credentials=CREDENCIALES)
        assert verify_client_credentials("landing", "s3cret", settings) is True
        assert verify_client_credentials("landing", "mal", settings) is False
        assert verify_client_credentials("otro", "s3cret", settings) is False

    def test_load_credentials(self, test_settings):
        settings = replace(test_settings, valid_client_credentials=CREDENCIALES)
        assert load_client_credentials(settings) == [("landing", "s3cret")]
        assert load_client_credentials(test_settings) == []

    @pytest.mark.parametrize("raw", ["no-es-json", '[{"clientId": "x"}]', "42"])
    def test_malformed_list(self, test_settings, raw):
        settings = replace(test_settings, environment="production", valid_client_credentials=raw)
        with pytest.raises(ConfigurationError, match="VALID_CLIENT_CREDENTIALS"):
            verify_client_credentials("landing", "s3cret", settings)
