"""
Validadores de documentos y códigos usados en la librería
"""
import re
from typing import Optional


def only_digits(value: str) -> str:
    """Elimina todo lo que no sea dígito (puntos, guiones, espacios)."""
    return re.sub(r'[^0-9]', '', value or '')


def validate_isbn(isbn: str) -> bool:
    """
    Valida el código de catálogo de un libro.
    - Solo números
    - Entre 10 y 13 dígitos
    """
    return bool(re.match(r'^[0-9]{10,13}$', isbn or ''))


def calculate_cpf_check_digits(base: str) -> Optional[str]:
    """
    Calcula los dos dígitos verificadores de un CPF a partir de sus 9 dígitos base.

    Retorna None si la base no tiene 9 dígitos.
    """
    if len(base) != 9 or not base.isdigit():
        return None

    digits = base
    for length in (9, 10):
        total = sum(int(digits[i]) * ((length + 1) - i) for i in range(length))
        digits += str(((10 * total) % 11) % 10)
    return digits[-2:]


def validate_cpf(cpf: str) -> bool:
    """
    Valida CPF brasileño.
    - 11 dígitos después de limpiar puntos y guión
    - No puede tener todos los dígitos iguales
    - Dígitos verificadores correctos
    """
    cleaned = only_digits(cpf)

    if len(cleaned) != 11:
        return False

    if cleaned == cleaned[0] * 11:
        return False

    return calculate_cpf_check_digits(cleaned[:9]) == cleaned[9:]
