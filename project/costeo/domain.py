# costeo/domain.py
from dataclasses import dataclass, field
from typing import List, Optional

GENERAL_MARKER = "comun"   # regla de distribución para costos generales


@dataclass(frozen=True)
class Product:
    name: str
    unit_cost: float
    quantity: int
    tariff_rate: str        # "comun" ou um ID específico (ex: "ELECTRO_T1")

    @property
    def initial_cost(self) -> float:
        return self.unit_cost * self.quantity


@dataclass(frozen=True)
class Service:
    provider_name: str
    service_name: str
    cost: float
    distribution_rule: str  # "comun" (sem diferenciar maiúsculas) ou tariff_rate exato

    @property
    def is_general(self) -> bool:
        return self.distribution_rule.lower() == GENERAL_MARKER


@dataclass
class ProcessedProduct:
    """
    Produto com os custos distribuídos.

    initial_cost vem do produto (não pode ser reatribuído); os acumuladores
    começam em 0 e cost_after_general_services / final_cost são sempre
    recalculados a partir deles (nunca atribuídos diretamente).
    """
    product: Product
    allocated_general_cost_sum: float = 0.0
    allocated_specific_cost_sum: float = 0.0

    @classmethod
    def from_product(cls, product: Product) -> "ProcessedProduct":
        return cls(product=product)

    @property
    def name(self) -> str:
        return self.product.name

    @property
    def unit_cost(self) -> float:
        return self.product.unit_cost

    @property
    def quantity(self) -> int:
        return self.product.quantity

    @property
    def tariff_rate(self) -> str:
        return self.product.tariff_rate

    @property
    def initial_cost(self) -> float:
        return self.product.initial_cost

    @property
    def cost_after_general_services(self) -> float:
        return self.initial_cost + self.allocated_general_cost_sum

    @property
    def final_cost(self) -> float:
        return self.cost_after_general_services + self.allocated_specific_cost_sum


@dataclass(frozen=True)
class DistributionGap:
    rule: str
    total_cost: float
    service_count: int


@dataclass(frozen=True)
class CostTotals:
    total_product_cost: float
    total_service_cost: float

    @property
    def total_global_cost(self) -> float:
        return self.total_product_cost + self.total_service_cost


@dataclass
class AllocationResult:
    products: List[ProcessedProduct]
    gaps: List[DistributionGap] = field(default_factory=list)

    @property
    def distributed_service_cost(self) -> float:
        return sum(
            p.allocated_general_cost_sum + p.allocated_specific_cost_sum
            for p in self.products
        )

    def gap_for(self, rule: str) -> Optional[DistributionGap]:
        for g in self.gaps:
            if g.rule == rule:
                return g
        return None
