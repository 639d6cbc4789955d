from __future__ import annotations


class ClinicaError(Exception):
    """Base de todos los errores del dominio."""


class ValidationError(ClinicaError):
    """Datos de entrada inválidos (siempre causados por el cliente)."""


class StorageError(ClinicaError):
    pass


class NotificationError(ClinicaError):
    pass


class DecryptionError(ClinicaError):
    pass


class ConfigurationError(ClinicaError):
    """Falta un secreto o una variable del servidor: nunca es culpa del cliente."""


class TokenError(ClinicaError):
    pass


class TokenExpiredError(TokenError):
    pass


class TokenInvalidError(TokenError):
    pass
