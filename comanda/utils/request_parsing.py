"""Helpers to read JSON request bodies and query arguments."""
from typing import Any, Dict

from flask import request

from comanda.exceptions import ValidationError


def json_body() -> Dict[str, Any]:
    """Request JSON object; an empty body is treated as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('El cuerpo de la petición debe ser un objeto JSON')
    return data


def required_int(data: Dict[str, Any], key: str, label: str) -> int:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{label} es requerido')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{label} debe ser un número entero')


def bool_flag(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'si', 'sí')
    return bool(value)
