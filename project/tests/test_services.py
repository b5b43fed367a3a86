import logging
import math

import pytest

from costeo.domain import ProcessedProduct, Product, Service
from costeo.io import EmptyProductsError
from costeo.services import (
    allocate,
    compute_totals,
    cost_increase_factor,
    final_unit_cost,
    process,
)


def _svc(cost, rule, name="Servicio"):
    return Service(provider_name="Prov", service_name=name, cost=cost, distribution_rule=rule)


def test_escenario_a_un_producto_costo_comun():
    products = [Product("Widget", 10, 5, "R1")]
    services = [Service("P1", "Freight", 50, "comun")]

    res = allocate(products, services)
    p = res.products[0]

    assert p.initial_cost == 50
    assert p.allocated_general_cost_sum == pytest.approx(50)
    assert p.cost_after_general_services == pytest.approx(100)
    assert p.final_cost == pytest.approx(100)
    assert final_unit_cost(p) == pytest.approx(20)
    assert cost_increase_factor(p) == "2.0000x"
    assert res.gaps == []


def test_escenario_b_regla_especifica_sin_comun():
    products = [Product("A", 10, 10, "T1"), Product("B", 20, 5, "T2")]
    services = [Service("X", "Tax", 30, "T1")]

    a, b = allocate(products, services).products

    assert a.allocated_general_cost_sum == 0
    assert b.allocated_general_cost_sum == 0
    assert a.allocated_specific_cost_sum == pytest.approx(30)
    assert a.final_cost == pytest.approx(130)
    assert b.allocated_specific_cost_sum == 0
    assert b.final_cost == pytest.approx(100)


def test_escenario_c_regla_huerfana_no_altera_costos(caplog):
    products = [Product("A", 10, 10, "T1"), Product("B", 20, 5, "T2")]
    services = [_svc(40, "T9")]

    with caplog.at_level(logging.WARNING, logger="costeo.services"):
        res = allocate(products, services)

    assert [p.final_cost for p in res.products] == [100, 100]
    assert len(res.gaps) == 1
    gap = res.gaps[0]
    assert gap.rule == "T9"
    assert gap.total_cost == 40
    assert gap.service_count == 1
    assert res.gap_for("T9") is gap
    assert "T9" in caplog.text


def test_escenario_d_sin_productos():
    with pytest.raises(EmptyProductsError):
        process("\n\n", "P1,Flete,100,comun\n")


def test_conservacion_fase_general():
    products = [
        Product("A", 3.3, 7, "T1"),
        Product("B", 12.15, 3, "T2"),
        Product("C", 0.99, 101, "T1"),
    ]
    services = [_svc(17.5, "comun"), _svc(2.25, "COMUN"), _svc(9, "Comun")]

    res = allocate(products, services)
    total = sum(p.allocated_general_cost_sum for p in res.products)
    assert math.isclose(total, 17.5 + 2.25 + 9, rel_tol=1e-9)

    # proporcional ao custo inicial
    a, b, _ = res.products
    assert a.allocated_general_cost_sum / b.allocated_general_cost_sum == pytest.approx(
        a.initial_cost / b.initial_cost
    )


def test_conservacion_por_regla_y_base_post_generales():
    products = [
        Product("A", 10, 10, "T1"),   # 100
        Product("B", 30, 10, "T1"),   # 300
        Product("C", 50, 2, "T2"),    # 100
    ]
    services = [_svc(100, "comun"), _svc(80, "T1"), _svc(20, "T1"), _svc(7, "T2")]

    res = allocate(products, services)
    a, b, c = res.products

    t1 = a.allocated_specific_cost_sum + b.allocated_specific_cost_sum
    assert math.isclose(t1, 100, rel_tol=1e-9)
    assert math.isclose(c.allocated_specific_cost_sum, 7, rel_tol=1e-9)

    # A: 100 + 20 geral = 120 ; B: 300 + 60 = 360 -> 1/4 e 3/4 da regra T1
    assert a.cost_after_general_services == pytest.approx(120)
    assert b.cost_after_general_services == pytest.approx(360)
    assert a.allocated_specific_cost_sum == pytest.approx(25)
    assert b.allocated_specific_cost_sum == pytest.approx(75)


def test_costos_cero_no_distribuyen():
    products = [Product("A", 10, 2, "T1"), Product("B", 5, 4, "T2")]
    services = [_svc(0, "comun"), _svc(0, "T1")]

    res = allocate(products, services)
    for p in res.products:
        assert p.allocated_general_cost_sum == 0
        assert p.cost_after_general_services == p.initial_cost
        assert p.final_cost == p.initial_cost
    assert res.gaps == []


def test_valor_inicial_cero_descarta_costo_comun():
    products = [Product("Gratis", 0, 10, "T1"), Product("Vacio", 99, 0, "T1")]
    services = [_svc(50, "comun"), _svc(30, "T1")]

    res = allocate(products, services)

    # nada é distribuído nem em partes iguais
    assert res.distributed_service_cost == 0
    assert all(p.final_cost == 0 for p in res.products)


def test_regla_especifica_distingue_mayusculas():
    products = [Product("A", 10, 1, "t1"), Product("B", 10, 1, "T1")]
    services = [_svc(10, "T1")]

    a, b = allocate(products, services).products
    assert a.allocated_specific_cost_sum == 0
    assert b.allocated_specific_cost_sum == pytest.approx(10)


def test_producto_con_tasa_comun_solo_recibe_generales():
    products = [Product("A", 10, 1, "comun"), Product("B", 10, 1, "T1")]
    services = [_svc(10, "comun"), _svc(6, "T1")]

    a, b = allocate(products, services).products
    assert a.allocated_general_cost_sum == pytest.approx(5)
    assert a.allocated_specific_cost_sum == 0
    assert b.final_cost == pytest.approx(21)


def test_monotonia_y_invariantes():
    products = [
        Product("A", 1.5, 3, "X"),
        Product("B", 0, 9, "X"),
        Product("C", 7, 0, "Y"),
        Product("D", 2, 2, "Z"),
    ]
    services = [_svc(4, "comun"), _svc(3, "X"), _svc(1, "Y"), _svc(11, "W")]

    for p in allocate(products, services).products:
        assert p.final_cost >= p.cost_after_general_services >= p.initial_cost
        assert p.final_cost == pytest.approx(
            p.initial_cost + p.allocated_general_cost_sum + p.allocated_specific_cost_sum
        )
        assert p.cost_after_general_services == pytest.approx(p.initial_cost + p.allocated_general_cost_sum)


def test_no_altera_entradas_y_es_deterministico():
    products = [Product("A", 10, 10, "T1"), Product("B", 20, 5, "T2")]
    services = [_svc(30, "T1"), _svc(10, "comun")]
    snapshot = (list(products), list(services))

    r1 = allocate(products, services)
    r2 = allocate(products, services)

    assert (products, services) == snapshot
    assert [p.final_cost for p in r1.products] == [p.final_cost for p in r2.products]
    assert r1.products[0] is not r2.products[0]


def test_productos_duplicados_reciben_cada_uno_su_parte():
    products = [Product("A", 10, 1, "T1"), Product("A", 10, 1, "T1")]
    services = [_svc(10, "T1")]

    a1, a2 = allocate(products, services).products
    assert a1.allocated_specific_cost_sum == pytest.approx(5)
    assert a2.allocated_specific_cost_sum == pytest.approx(5)


def test_sin_servicios():
    res = allocate([Product("A", 10, 1, "T1")], [])
    assert res.products[0].final_cost == 10
    assert res.gaps == []


@pytest.mark.parametrize(
    "unit_cost, quantity, services, expected",
    [
        (10, 5, [], "1.0000x"),
        (0, 5, [_svc(10, "comun")], "N/A"),       # valor inicial 0 -> comun descartado
        (0, 5, [_svc(10, "T1")], "N/A"),
        (10, 0, [_svc(10, "comun")], "N/A"),
        (0, 0, [], "N/A"),
    ],
)
def test_factor_incremento(unit_cost, quantity, services, expected):
    p = allocate([Product("A", unit_cost, quantity, "T1")], services).products[0]
    assert cost_increase_factor(p) == expected


def test_factor_infinito_cuando_costo_unitario_cero():
    products = [Product("Muestra", 0, 4, "T1"), Product("Caja", 10, 1, "T1")]
    muestra, caja = allocate(products, [_svc(10, "comun"), _svc(8, "T1")]).products

    # base 0 nunca recebe parte proporcional
    assert muestra.final_cost == 0
    assert cost_increase_factor(muestra) == "N/A"
    assert caja.final_cost == pytest.approx(28)

    p = ProcessedProduct.from_product(Product("Muestra", 0, 4, "T1"))
    p.allocated_specific_cost_sum = 4
    assert final_unit_cost(p) == pytest.approx(1)
    assert cost_increase_factor(p) == "Infinito"


def test_final_unit_cost_sin_cantidad():
    p = allocate([Product("A", 10, 0, "T1")], []).products[0]
    assert final_unit_cost(p) is None


def test_totales():
    products = [Product("A", 10, 10, "T1"), Product("B", 20, 5, "T2")]
    services = [_svc(30, "T1"), _svc(12.5, "comun"), _svc(40, "T9")]

    totals = compute_totals(products, services)
    assert totals.total_product_cost == 200
    assert totals.total_service_cost == pytest.approx(82.5)
    assert totals.total_global_cost == pytest.approx(282.5)


def test_process_de_texto():
    products_text = "Widget, 10, 5, R1\n\n"
    services_text = "P1,Freight,50,comun\nP2,Inspeccion,40,T9\n"

    products, services, totals, res = process(products_text, services_text)

    assert len(products) == 1
    assert len(services) == 2
    assert totals.total_global_cost == pytest.approx(140)
    assert res.products[0].final_cost == pytest.approx(100)
    # o custo da regra órfã fica fora do total distribuído
    assert res.distributed_service_cost == pytest.approx(50)
    assert [g.rule for g in res.gaps] == ["T9"]


def test_costo_inicial_no_se_puede_reasignar():
    p = allocate([Product("A", 10, 3, "T1")], []).products[0]

    with pytest.raises(AttributeError):
        p.initial_cost = 0
    assert p.initial_cost == 30
