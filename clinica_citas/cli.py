from __future__ import annotations

import argparse
import os
import sys

from dotenv import load_dotenv

from .auth_security import create_client_token
from .config import Settings, validar_entorno
from .encryption import encrypt
from .errors import ClinicaError


def cmd_validate_env(args: argparse.Namespace) -> int:
    rep = validar_entorno(os.environ, args.environment)
    print(f"Validando configuración para ambiente: {rep.environment}")
    print("=" * 50)
    for line in rep.lines:
        print(line)
    print("=" * 50)
    if not rep.ok:
        print("Configuración INCOMPLETA. Corrige los errores antes de continuar.")
        return 1
    print(f"Configuración VÁLIDA para el ambiente: {rep.environment}")
    return 0


def cmd_encrypt(args: argparse.Namespace) -> int:
    """Genera el texto cifrado que un cliente enviaría como encryptedClientId/Secret."""
    key = args.key or os.getenv("ENCRYPTION_KEY")
    print(encrypt(args.text, key or ""))
    return 0


def cmd_token(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    print(create_client_token(args.client_id, settings))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(
        "clinica_citas.api_main:create_app",
        factory=True,
        host=args.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="clinica_citas", description="Utilidades de la API de citas")
    sub = p.add_subparsers(required=True)

    p_env = sub.add_parser("validate-env", help="Valida las variables de entorno")
    p_env.add_argument("environment", nargs="?", choices=["development", "production"], default=None)
    p_env.set_defaults(func=cmd_validate_env)

    p_enc = sub.add_parser("encrypt", help="Cifra un texto con ENCRYPTION_KEY (formato CryptoJS)")
    p_enc.add_argument("text")
    p_enc.add_argument("--key", default=None, help="Clave (por defecto ENCRYPTION_KEY)")
    p_enc.set_defaults(func=cmd_encrypt)

    p_tok = sub.add_parser("token", help="Emite un token de acceso para un cliente")
    p_tok.add_argument("--client-id", required=True)
    p_tok.set_defaults(func=cmd_token)

    p_srv = sub.add_parser("serve", help="Arranca la API con uvicorn")
    p_srv.add_argument("--host", default="0.0.0.0")
    p_srv.add_argument("--port", type=int, default=None)
    p_srv.set_defaults(func=cmd_serve)

    return p


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except ClinicaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
