# costeo/io.py
import re
from pathlib import Path
from typing import List, Optional

from .domain import Product, Service


class ParseError(ValueError):
    """Linha mal formada num arquivo de produtos ou serviços."""

    def __init__(self, kind: str, line_number: int, field: Optional[str], detail: str):
        self.kind = kind
        self.line_number = line_number
        self.field = field
        super().__init__(f"Error en archivo de {kind}, línea {line_number}: {detail}")


class EmptyProductsError(ValueError):
    def __init__(self):
        super().__init__("El archivo de productos no contiene datos válidos o está vacío.")


PRODUCT_FIELDS = "Nombre,CostoUnitario,Cantidad,TasaArancelaria"
SERVICE_FIELDS = "Proveedor,Servicio,Costo,TasaArancelariaAsignada"


def _data_lines(text: str) -> List[str]:
    # só "\n" separa registros; linhas em branco não contam na numeração
    return [ln for ln in text.split("\n") if ln.strip()]


def _split_fields(line: str, kind: str, line_number: int, expected: str) -> List[str]:
    parts = line.split(",")
    if len(parts) != 4:
        raise ParseError(
            kind, line_number, None,
            f'Se esperan 4 campos ({expected}). Encontrado: "{line}"',
        )
    return [p.strip() for p in parts]


_FLOAT_RE = re.compile(r"\+?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")
_INT_RE = re.compile(r"\+?[0-9]+")


def _non_negative_float(raw: str) -> Optional[float]:
    # só dígitos ASCII: float() aceitaria "1_000", "nan", "1e3" e dígitos não ASCII
    if not _FLOAT_RE.fullmatch(raw):
        return None
    return float(raw)


def _non_negative_int(raw: str) -> Optional[int]:
    if not _INT_RE.fullmatch(raw):
        return None
    return int(raw)


def parse_products(text: str) -> List[Product]:
    """
    Lê linhas no formato: Nombre,CostoUnitario,Cantidad,TasaArancelaria
    Sem cabeçalho. Primeiro erro encontrado aborta o lote inteiro.
    """
    kind = "productos"
    produtos: List[Product] = []

    for i, line in enumerate(_data_lines(text), start=1):
        name, unit_cost_raw, quantity_raw, tariff_rate = _split_fields(line, kind, i, PRODUCT_FIELDS)

        unit_cost = _non_negative_float(unit_cost_raw)
        if unit_cost is None:
            raise ParseError(kind, i, "unit_cost", f'Costo unitario inválido "{unit_cost_raw}".')

        quantity = _non_negative_int(quantity_raw)
        if quantity is None:
            raise ParseError(kind, i, "quantity", f'Cantidad inválida "{quantity_raw}".')

        if not name:
            raise ParseError(kind, i, "name", "Nombre del producto no puede estar vacío.")
        if not tariff_rate:
            raise ParseError(
                kind, i, "tariff_rate",
                'Tasa arancelaria no puede estar vacía (usar "comun" si aplica a todos o un ID específico).',
            )

        produtos.append(Product(name=name, unit_cost=unit_cost, quantity=quantity, tariff_rate=tariff_rate))

    return produtos


def parse_services(text: str) -> List[Service]:
    """Lê linhas no formato: Proveedor,Servicio,Costo,ReglaDistribucion"""
    kind = "servicios"
    servicos: List[Service] = []

    for i, line in enumerate(_data_lines(text), start=1):
        provider_name, service_name, cost_raw, distribution_rule = _split_fields(line, kind, i, SERVICE_FIELDS)

        cost = _non_negative_float(cost_raw)
        if cost is None:
            raise ParseError(kind, i, "cost", f'Costo de servicio inválido "{cost_raw}".')
        if not provider_name:
            raise ParseError(kind, i, "provider_name", "Nombre de proveedor no puede estar vacío.")
        if not service_name:
            raise ParseError(kind, i, "service_name", "Nombre de servicio no puede estar vacío.")
        if not distribution_rule:
            raise ParseError(
                kind, i, "distribution_rule",
                'Tasa arancelaria asignada (4ta columna) no puede estar vacía. Usar "comun" o un ID específico.',
            )

        servicos.append(
            Service(
                provider_name=provider_name,
                service_name=service_name,
                cost=cost,
                distribution_rule=distribution_rule,
            )
        )

    return servicos


def read_text(path: str | Path, label: str) -> str:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Archivo de {label} no encontrado: {path}")
    # utf-8-sig: alguns Excels salvam com BOM
    return path.read_text(encoding="utf-8-sig")


def read_products_file(path: str | Path) -> List[Product]:
    return parse_products(read_text(path, "productos"))


def read_services_file(path: str | Path) -> List[Service]:
    return parse_services(read_text(path, "servicios"))
