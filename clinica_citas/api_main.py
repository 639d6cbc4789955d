from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .auth_security import create_client_token, decode_token, verify_client_credentials
from .config import Settings
from .encryption import decrypt_credentials
from .errors import ConfigurationError, DecryptionError, TokenExpiredError, TokenInvalidError
from .models import servicios_validos
from .notifications import EmailService, SmtpEmailService
from .repository import CitaRepository, InMemoryCitaRepository
from .security import (
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    api_key_valid,
    build_limiters,
    make_request_logger,
    validate_input,
)
from .services import ERROR_VALIDACION, CrearCitaUseCase

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "email", "phone", "service")
CITA_FIELDS = REQUIRED_FIELDS + ("message",)

MSG_TOKEN_REQUIRED = "Token de acceso requerido. Formato: Authorization: Bearer <token>"
MSG_CONFIG_ERROR = "Error de configuración del servidor"
MSG_SERVER_ERROR = "Error interno del servidor"

# Authorization: Bearer <token> (el 401 lo decidimos nosotros)
bearer_scheme = HTTPBearer(auto_error=False)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)



# Esquemas Auth

class TokenIn(BaseModel):
    # credenciales en claro o cifradas (CryptoJS), nunca ambas obligatorias
    clientId: str | None = None
    clientSecret: str | None = None
    encryptedClientId: str | None = None
    encryptedClientSecret: str | None = None


class TokenData(BaseModel):
    token: str
    expiresIn: str
    type: str = "Bearer"
    environment: str


class TokenOut(BaseModel):
    success: bool = True
    message: str = "Token generado exitosamente"
    data: TokenData


class ApiError(HTTPException):
    """HTTPException con detalle técnico opcional (solo visible fuera de producción)."""

    def __init__(self, status_code: int, detail: str, details: str | None = None):
        super().__init__(status_code=status_code, detail=detail)
        self.details = details



# App factory

def create_app(
    settings: Settings | None = None,
    repository: CitaRepository | None = None,
    email_service: EmailService | None = None,
) -> FastAPI:
    """
    Construye la aplicación. Uso con uvicorn:
        uvicorn clinica_citas.api_main:create_app --factory
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    settings.check_startup()

    repository = repository or InMemoryCitaRepository()
    email_service = email_service or SmtpEmailService(settings)
    crear_cita_uc = CrearCitaUseCase(repository, email_service)
    general_limiter, citas_limiter = build_limiters(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Servidor iniciado - ambiente: {settings.environment}")
        logger.info(f"Clínica: {settings.clinic_name} | Email: {settings.clinic_email}")
        verificacion = None
        if isinstance(email_service, SmtpEmailService):
            # en segundo plano; solo registra el resultado
            verificacion = asyncio.create_task(email_service.verificar_conexion())
        app.state.verificacion_smtp = verificacion
        yield
        if verificacion is not None and not verificacion.done():
            verificacion.cancel()
        logger.info("Servidor detenido")

    app = FastAPI(title="API Clínica", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.repository = repository
    app.state.email_service = email_service
    app.state.limiters = (general_limiter, citas_limiter)

    # Middleware: el último añadido es el más externo
    @app.middleware("http")
    async def api_key_gate(request: Request, call_next):
        if not api_key_valid(request, settings.api_keys):
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"success": False, "message": "API key inválida o faltante"},
            )
        return await call_next(request)

    app.add_middleware(SecurityHeadersMiddleware, production=settings.is_production)
    app.middleware("http")(make_request_logger(settings))
    app.add_middleware(RateLimitMiddleware, limiter=general_limiter)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        expose_headers=["X-Total-Count", "X-Rate-Limit-Remaining"],
    )


    # Error handlers

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and exc.detail == "Not Found":
            return JSONResponse(
                status_code=404,
                content={
                    "success": False,
                    "message": "Endpoint no encontrado",
                    "path": request.url.path,
                    "method": request.method,
                },
            )

        content: dict[str, Any] = {"success": False, "message": exc.detail}
        details = getattr(exc, "details", None)
        if details and not settings.is_production:
            content["details"] = details
        headers = getattr(exc, "headers", None)
        if headers and "Retry-After" in headers:
            content["retryAfter"] = int(headers["Retry-After"])
        return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning(f"Datos de entrada inválidos en {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Datos de entrada inválidos",
                "errors": [str(err.get("msg")) for err in exc.errors()],
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Error no manejado en {request.url.path}: {exc}")
        content: dict[str, Any] = {"success": False, "message": MSG_SERVER_ERROR}
        if not settings.is_production:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)


    # Dependencias

    async def require_token(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> dict[str, Any]:
        if credentials is None or not credentials.credentials:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=MSG_TOKEN_REQUIRED)

        # elimina espacios / comillas accidentales
        token = credentials.credentials.strip().strip('"').strip("'")
        try:
            return decode_token(token, settings)
        except TokenExpiredError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expirado")
        except TokenInvalidError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido")
        except ConfigurationError as e:
            logger.error(f"JWT_SECRET no configurado: {e}")
            raise HTTPException(status_code=500, detail=MSG_CONFIG_ERROR)

    async def resolve_credentials(payload: TokenIn) -> TokenIn:
        """Si llegan ambas credenciales cifradas, las sustituye por su texto plano."""
        if not (payload.encryptedClientId and payload.encryptedClientSecret):
            return payload

        if not settings.encryption_key:
            raise HTTPException(
                status_code=400,
                detail="Cifrado de credenciales no disponible en esta configuración",
            )
        try:
            client_id, client_secret = decrypt_credentials(
                payload.encryptedClientId, payload.encryptedClientSecret, settings.encryption_key
            )
        except DecryptionError as e:
            logger.warning(f"Credenciales cifradas rechazadas: {e}")
            raise ApiError(400, "Error al procesar credenciales cifradas", details=str(e))
        return TokenIn(clientId=client_id, clientSecret=client_secret)


    # Endpoints

    @app.post("/api/auth/token", response_model=TokenOut)
    def generate_token(creds: TokenIn = Depends(resolve_credentials)) -> TokenOut:
        if not creds.clientId or not creds.clientSecret:
            raise HTTPException(
                status_code=400,
                detail="clientId y clientSecret son requeridos (pueden ser cifrados o sin cifrar)",
            )

        try:
            valid = verify_client_credentials(creds.clientId, creds.clientSecret, settings)
        except ConfigurationError as e:
            logger.error(f"Error al leer VALID_CLIENT_CREDENTIALS: {e}")
            raise HTTPException(status_code=500, detail=MSG_CONFIG_ERROR)
        if not valid:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciales inválidas")

        try:
            token = create_client_token(creds.clientId, settings)
        except ConfigurationError as e:
            logger.error(f"Error al generar token: {e}")
            raise HTTPException(status_code=500, detail="Error al generar token")

        return TokenOut(
            data=TokenData(token=token, expiresIn=settings.jwt_expires_in, environment=settings.environment)
        )

    @app.post(
        "/api/citas",
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(require_token), Depends(citas_limiter), Depends(validate_input)],
    )
    async def crear_cita(payload: Any = Body(None)) -> JSONResponse:
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Datos de entrada inválidos")

        missing = [f for f in REQUIRED_FIELDS if not payload.get(f)]
        if missing:
            raise HTTPException(status_code=400, detail=f"Campos requeridos faltantes: {', '.join(missing)}")

        if any(not isinstance(payload[f], str) for f in REQUIRED_FIELDS):
            raise HTTPException(status_code=400, detail="Todos los campos deben ser cadenas de texto")

        resultado = await crear_cita_uc.execute({f: payload.get(f) for f in CITA_FIELDS})

        if resultado.success:
            code = status.HTTP_201_CREATED
        elif resultado.error == ERROR_VALIDACION:
            code = status.HTTP_400_BAD_REQUEST
        else:
            code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return JSONResponse(status_code=code, content=resultado.to_dict())

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {
            "success": True,
            "message": "API funcionando correctamente",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
            "version": __version__,
        }

    @app.get("/api/info")
    def info() -> dict[str, Any]:
        return {
            "success": True,
            "data": {
                "name": f"API {settings.clinic_name}",
                "version": __version__,
                "description": "API REST para gestión de citas médicas",
                "authentication": "JWT Token Required",
                "endpoints": {
                    "POST /api/auth/token": "Generar token de acceso",
                    "POST /api/citas": "Crear nueva cita (requiere token)",
                    "GET /api/health": "Verificar estado de la API",
                },
                "services": servicios_validos(),
                "features": [
                    "Autenticación JWT",
                    "Envío de correos electrónicos",
                    "Validación de datos",
                    "Rate limiting",
                    "CORS configurado",
                    "Logging de seguridad",
                ],
            },
        }

    return app
