"""
Backend de la clínica: solicitudes de citas médicas.

Estructura:
- config.py        : Settings inmutable cargado desde el entorno (.env)
- errors.py        : jerarquía de errores del dominio
- models.py        : entidad Cita y catálogo de servicios médicos
- repository.py    : puerto de almacenamiento + adaptador en memoria
- notifications.py : puerto de emails + adaptador SMTP
- services.py      : caso de uso "crear cita"
- encryption.py    : cifrado/descifrado de credenciales (formato CryptoJS)
- auth_security.py : emisión y verificación de tokens JWT
- security.py      : middleware de seguridad (headers, rate limit, logging)
- api_main.py      : aplicación FastAPI
- cli.py           : utilidades de línea de comandos
- client.py        : cliente HTTP usado por la UI Streamlit
"""

__version__ = "2.0.0"
