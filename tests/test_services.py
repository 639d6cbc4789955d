"""
Tests del caso de uso CrearCitaUseCase.
"""

import re
from unittest.mock import AsyncMock

import pytest

from clinica_citas.errors import NotificationError, StorageError
from clinica_citas.services import (
    ERROR_INTERNO,
    ERROR_VALIDACION,
    MSG_CITA_CREADA,
    CrearCitaUseCase,
    ResultadoCita,
)


@pytest.fixture
def use_case(repository, email_service):
    return CrearCitaUseCase(repository, email_service)


class TestCrearCitaUseCase:
    @pytest.mark.asyncio
    async def test_success(self, use_case, repository, email_service, valid_datos):
        resultado = await use_case.execute(valid_datos)

        assert resultado.success is True
        assert resultado.message == MSG_CITA_CREADA
        assert re.match(r"^CITA-\d+-[0-9a-z]{9}$", resultado.appointment_id)
        assert await repository.get_by_id(resultado.appointment_id) is not None

        email_service.enviar_email_cita.assert_awaited_once()
        email_service.enviar_email_confirmacion.assert_awaited_once()
        cita = email_service.enviar_email_cita.await_args.args[0]
        assert cita.id == resultado.appointment_id

    @pytest.mark.asyncio
    async def test_validation_failure(self, use_case, repository, email_service, valid_datos):
        resultado = await use_case.execute({**valid_datos, "name": "J"})

        assert resultado.success is False
        assert "Nombre" in resultado.message
        assert resultado.error == ERROR_VALIDACION
        assert await repository.get_all() == []
        email_service.enviar_email_cita.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_service(self, use_case, valid_datos):
        resultado = await use_case.execute({**valid_datos, "service": "brain-surgery"})
        assert resultado.success is False
        assert "Servicio" in resultado.message

    @pytest.mark.asyncio
    async def test_storage_failure(self, email_service, valid_datos):
        repo = AsyncMock()
        repo.save.side_effect = StorageError("disco lleno")
        use_case = CrearCitaUseCase(repo, email_service)

        resultado = await use_case.execute(valid_datos)

        assert resultado.success is False
        assert resultado.message == "Error al crear la cita"
        assert resultado.error == ERROR_INTERNO
        email_service.enviar_email_cita.assert_not_awaited()
        email_service.enviar_email_confirmacion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_one_notification_fails(self, use_case, email_service, valid_datos):
        email_service.enviar_email_cita.side_effect = NotificationError("SMTP caído")

        resultado = await use_case.execute(valid_datos)

        assert resultado.success is True
        email_service.enviar_email_confirmacion.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_both_notifications_fail(self, use_case, email_service, valid_datos):
        email_service.enviar_email_cita.side_effect = NotificationError("SMTP caído")
        email_service.enviar_email_confirmacion.side_effect = RuntimeError("inesperado")

        resultado = await use_case.execute(valid_datos)

        assert resultado.success is True
        assert resultado.appointment_id

    @pytest.mark.asyncio
    async def test_wrong_shape_never_raises(self, use_case):
        resultado = await use_case.execute("no soy un dict")
        assert resultado.success is False


class TestResultadoCita:
    def test_success_dict(self):
        r = ResultadoCita(True, "ok", appointment_id="CITA-1-abcdefghi")
        assert r.to_dict() == {"success": True, "message": "ok", "appointmentId": "CITA-1-abcdefghi"}

    def test_failure_dict_hides_error_kind(self):
        r = ResultadoCita(False, "mal", error=ERROR_VALIDACION)
        assert r.to_dict() == {"success": False, "message": "mal"}
