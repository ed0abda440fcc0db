"""
Lectura de archivos CSV de importación (libros, precios, stock)

Los archivos exportados por la planilla de la librería usan ';' como
separador, pueden traer BOM y cabeceras en portugués. read_csv_rows
normaliza la cabecera y entrega cada fila como dict junto con su
número de línea, para que el servicio reporte errores por línea.
"""

import csv
import io
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from bookstore_pos.common.exceptions import ValidationError
from bookstore_pos.core.config import settings

# Cabeceras aceptadas en portugués -> nombre interno
HEADER_ALIASES = {
    "titulo": "title",
    "autor": "author",
    "editora": "publisher",
    "tipo_estoque": "condition",
    "quantidade": "quantity",
    "preco": "price",
    "preço": "price",
}

# Valores de condición aceptados -> StockCondition.value
CONDITION_ALIASES = {
    "new": "NEW",
    "novo": "NEW",
    "discounted": "DISCOUNTED",
    "saldo": "DISCOUNTED",
}


def normalize_condition(raw: str) -> Optional[str]:
    return CONDITION_ALIASES.get((raw or "").strip().lower())


def _normalize_header(header: Sequence[str]) -> List[str]:
    normalized = []
    for name in header:
        key = name.strip().lower()
        normalized.append(HEADER_ALIASES.get(key, key))
    return normalized


def read_csv_rows(content: bytes, required: Sequence[str],
                  delimiter: Optional[str] = None) -> Iterator[Tuple[int, Dict[str, str]]]:
    """
    Itera las filas de un CSV como (número_de_línea, {columna: valor}).

    Raises:
        ValidationError: si el archivo no es UTF-8 o faltan columnas obligatorias
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("El archivo CSV debe estar codificado en UTF-8")

    reader = csv.reader(io.StringIO(text), delimiter=delimiter or settings.CSV_DELIMITER)
    header = next(reader, None)
    if not header:
        raise ValidationError(
            "Cabecera insuficiente",
            required=", ".join(required)
        )

    columns = _normalize_header(header)
    missing = [name for name in required if name not in columns]
    if missing:
        raise ValidationError(
            f"Cabecera inválida. Campos obligatorios: {', '.join(required)}",
            missing=", ".join(missing),
            found=", ".join(header)
        )

    for line_number, values in enumerate(reader, start=2):
        if not any(value.strip() for value in values):
            continue
        row = {
            column: (values[index].strip() if index < len(values) else "")
            for index, column in enumerate(columns)
        }
        yield line_number, row
