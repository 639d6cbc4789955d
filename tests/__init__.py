"""
Tests de la API de citas.

Ejecutar con:
    python -m pytest tests/ -v
"""
