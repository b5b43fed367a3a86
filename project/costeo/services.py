# costeo/services.py
import logging
from typing import Iterable, List, Optional, Sequence

from .domain import (
    AllocationResult,
    CostTotals,
    DistributionGap,
    ProcessedProduct,
    Product,
    Service,
)
from .io import EmptyProductsError, parse_products, parse_services

logger = logging.getLogger(__name__)

INFINITE_FACTOR = "Infinito"
NOT_APPLICABLE = "N/A"


def _specific_rules(services: Iterable[Service]) -> List[str]:
    # regras distintas (exceto "comun"), na ordem em que aparecem
    rules: List[str] = []
    for s in services:
        if not s.is_general and s.distribution_rule not in rules:
            rules.append(s.distribution_rule)
    return rules


def _distribute_general(processed: List[ProcessedProduct], services: Sequence[Service]) -> None:
    total_general = sum(s.cost for s in services if s.is_general)
    total_initial = sum(p.initial_cost for p in processed)

    if total_general <= 0 or total_initial <= 0:
        logger.debug(
            "sem distribuição geral (custo comun=%s, valor inicial=%s)", total_general, total_initial
        )
        return

    for p in processed:
        p.allocated_general_cost_sum = (p.initial_cost / total_initial) * total_general

    logger.debug("custo comun %.4f distribuído entre %d produtos", total_general, len(processed))


def _distribute_specific(
    processed: List[ProcessedProduct],
    services: Sequence[Service],
) -> List[DistributionGap]:
    gaps: List[DistributionGap] = []

    for rule in _specific_rules(services):
        services_for_rule = [s for s in services if s.distribution_rule == rule]
        total_cost = sum(s.cost for s in services_for_rule)

        # índices estáveis: atualiza a lista no lugar, sem buscar por igualdade
        matching = [i for i, p in enumerate(processed) if p.tariff_rate == rule]

        if not matching:
            logger.warning(
                'Servicios con regla de distribución "%s" (costo total: %s) no coinciden con '
                "ningún producto. Este costo no será distribuido.",
                rule, total_cost,
            )
            gaps.append(DistributionGap(rule=rule, total_cost=total_cost, service_count=len(services_for_rule)))
            continue

        # base = custo após os gerais (não o custo inicial)
        total_base = sum(processed[i].cost_after_general_services for i in matching)
        if total_cost <= 0 or total_base <= 0:
            continue

        for i in matching:
            share = processed[i].cost_after_general_services / total_base
            processed[i].allocated_specific_cost_sum += share * total_cost

    return gaps


def allocate(products: Sequence[Product], services: Sequence[Service]) -> AllocationResult:
    """
    Distribui os custos dos serviços entre os produtos em duas fases:

    1. serviços "comun" (sem diferenciar maiúsculas) -> todos os produtos,
       proporcional ao custo inicial;
    2. cada regra específica -> produtos com tariff_rate idêntico,
       proporcional ao custo após os gerais.

    Totais zerados não distribuem nada (o custo fica de fora). Regras sem
    produto correspondente viram DistributionGap e são logadas.
    Não altera as entradas.
    """
    processed = [ProcessedProduct.from_product(p) for p in products]

    _distribute_general(processed, services)
    gaps = _distribute_specific(processed, services)

    return AllocationResult(products=processed, gaps=gaps)


def final_unit_cost(p: ProcessedProduct) -> Optional[float]:
    if p.quantity > 0:
        return p.final_cost / p.quantity
    return None


def cost_increase_factor(p: ProcessedProduct) -> str:
    unit_final = final_unit_cost(p)
    if unit_final is None or unit_final <= 0:
        return NOT_APPLICABLE
    if p.unit_cost > 0:
        return f"{unit_final / p.unit_cost:.4f}x"
    if p.unit_cost == 0:
        return INFINITE_FACTOR
    return NOT_APPLICABLE


def compute_totals(products: Sequence[Product], services: Sequence[Service]) -> CostTotals:
    return CostTotals(
        total_product_cost=sum(p.initial_cost for p in products),
        total_service_cost=sum(s.cost for s in services),
    )


def process(products_text: str, services_text: str) -> tuple[List[Product], List[Service], CostTotals, AllocationResult]:
    """Parse + validação + cálculo. Qualquer erro aborta o lote (sem resultado parcial)."""
    products = parse_products(products_text)
    services = parse_services(services_text)

    if not products:
        raise EmptyProductsError()

    totals = compute_totals(products, services)
    result = allocate(products, services)

    if result.gaps:
        logger.info("%d regra(s) sem produto correspondente", len(result.gaps))

    return products, services, totals, result
