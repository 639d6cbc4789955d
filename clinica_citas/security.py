"""
Middleware de seguridad para FastAPI:
- SecurityHeadersMiddleware: cabeceras anti-clickjacking, nosniff, CSP, HSTS
- RateLimiter: ventana fija en memoria por IP (middleware general + dependencia por ruta)
- request_logger: log de acceso / avisos de seguridad
"""
import logging
import time
from threading import Lock
from typing import Callable

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import Settings

logger = logging.getLogger(__name__)

MAX_USER_AGENT_LENGTH = 100
MAX_USER_AGENT_WARNING_LENGTH = 50
MAX_BODY_BYTES = 1024 * 1024
CACHE_CLEANUP_INTERVAL = 60

MSG_RATE_LIMIT_GENERAL = "Demasiadas solicitudes. Por favor, espera antes de intentar nuevamente."
MSG_RATE_LIMIT_CITAS = "Demasiadas solicitudes de citas. Por favor, espera antes de intentar nuevamente."

CSP_POLICY = "; ".join(
    [
        "default-src 'self'",
        "style-src 'self' 'unsafe-inline'",
        "script-src 'self'",
        "img-src 'self' data: https:",
        "connect-src 'self'",
        "font-src 'self'",
        "object-src 'none'",
        "media-src 'self'",
        "frame-src 'none'",
    ]
)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# =========================
# Security headers
# =========================
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, production: bool = False):
        super().__init__(app)
        self.production = production

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Content-Security-Policy"] = CSP_POLICY
        if self.production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


# =========================
# Rate limiting
# =========================
class RateLimiter:
    """
    Ventana fija en memoria.
    Formato: {key: {"count": int, "reset_time": float}}
    Las entradas caducadas se eliminan como mucho una vez cada cleanup_interval segundos.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        message: str,
        key_prefix: str = "rate_limit",
        cleanup_interval: int = CACHE_CLEANUP_INTERVAL,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.message = message
        self.key_prefix = key_prefix
        self._cache: dict[str, dict[str, float]] = {}
        self._lock = Lock()
        self.cleanup_interval = cleanup_interval
        self._last_cleanup = time.monotonic()

    def hit(self, identifier: str) -> tuple[bool, int, int]:
        """Registra una solicitud. Devuelve (permitida, restantes, segundos_hasta_reset)."""
        key = f"{self.key_prefix}:{identifier}"
        now = time.monotonic()

        with self._lock:
            self._cleanup_expired(now)
            entry = self._cache.get(key)
            if entry is None or now >= entry["reset_time"]:
                entry = {"count": 0, "reset_time": now + self.window_seconds}
                self._cache[key] = entry

            allowed = entry["count"] < self.limit
            if allowed:
                entry["count"] += 1

            remaining = max(0, self.limit - int(entry["count"]))
            ttl = max(0, int(entry["reset_time"] - now))
            return allowed, remaining, ttl

    def _cleanup_expired(self, now: float) -> None:
        # llamar con el lock tomado
        if now - self._last_cleanup < self.cleanup_interval:
            return
        expired = [k for k, v in self._cache.items() if now >= v["reset_time"]]
        for k in expired:
            del self._cache[k]
        if expired:
            logger.debug(f"Eliminadas {len(expired)} entradas de rate limit caducadas")
        self._last_cleanup = now

    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def reset(self) -> None:
        with self._lock:
            self._cache.clear()

    def exceeded_body(self) -> dict:
        return {"success": False, "message": self.message, "retryAfter": self.window_seconds}

    async def __call__(self, request: Request) -> None:
        """Uso como dependencia FastAPI en una ruta concreta."""
        ip = client_ip(request)
        allowed, _, ttl = self.hit(ip)
        if not allowed:
            logger.warning(f"Rate limit excedido para {self.key_prefix}:{ip}")
            raise HTTPException(
                status_code=429,
                detail=self.message,
                headers={"Retry-After": str(ttl)},
            )


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        ip = client_ip(request)
        allowed, remaining, ttl = self.limiter.hit(ip)
        if not allowed:
            logger.warning(f"Rate limit general excedido para {ip}")
            return JSONResponse(
                status_code=429,
                content=self.limiter.exceeded_body(),
                headers={"Retry-After": str(ttl)},
            )

        response = await call_next(request)
        response.headers["X-Rate-Limit-Remaining"] = str(remaining)
        return response


def build_limiters(settings: Settings) -> tuple[RateLimiter, RateLimiter]:
    general = RateLimiter(
        settings.rate_limit_max_general,
        settings.rate_limit_window_seconds,
        MSG_RATE_LIMIT_GENERAL,
        key_prefix="general",
    )
    citas = RateLimiter(
        settings.rate_limit_max_citas,
        settings.rate_limit_window_seconds,
        MSG_RATE_LIMIT_CITAS,
        key_prefix="citas",
    )
    return general, citas


# =========================
# Logging de seguridad
# =========================
def make_request_logger(settings: Settings):
    async def request_logger(request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)

        user_agent = request.headers.get("User-Agent", "")[:MAX_USER_AGENT_LENGTH]
        log_data = {
            "method": request.method,
            "url": request.url.path,
            "ip": client_ip(request),
            "userAgent": user_agent,
            "statusCode": response.status_code,
            "duration": f"{duration_ms}ms",
        }

        if response.status_code >= 400:
            log_data["userAgent"] = user_agent[:MAX_USER_AGENT_WARNING_LENGTH]
            logger.warning(f"Security Warning: {log_data}")
        elif not settings.is_production:
            logger.debug(f"Access Log: {log_data}")

        return response

    return request_logger


# =========================
# Validación de entrada / API key
# =========================
async def validate_input(request: Request) -> None:
    """Dependencia: POST debe ser JSON y no superar 1MB."""
    content_type = request.headers.get("Content-Type", "")
    if request.method == "POST" and "application/json" not in content_type:
        raise HTTPException(status_code=400, detail="Content-Type debe ser application/json")

    try:
        content_length = int(request.headers.get("Content-Length") or 0)
    except ValueError:
        content_length = 0
    if content_length > MAX_BODY_BYTES:
        raise HTTPException(status_code=413, detail="Payload demasiado grande")


def api_key_valid(request: Request, api_keys: tuple[str, ...]) -> bool:
    """Sin API_KEYS configuradas se permite todo."""
    if not api_keys:
        return True
    return request.headers.get("X-API-Key") in api_keys
