# costeo/report.py
import csv
import math
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .domain import AllocationResult, CostTotals, ProcessedProduct, Product, Service
from .services import cost_increase_factor, final_unit_cost

CURRENCY = "USD"
DECIMALS = 4

RESULT_HEADERS = [
    "Producto", "C.U. Ini.", "Cant.", "Tasa Aranc.", "C.Ini.Total", "C.Gen.Dist.",
    "C.Esp.Dist.", "C.Acum.(Gen)", "C.Fin.Total", "C.U.Final", "Factor Inc.",
]


def format_currency(value: Optional[float], placeholder: str = "N/A") -> str:
    if value is None or math.isnan(value):
        return placeholder
    return f"{CURRENCY} {value:.{DECIMALS}f}"


def result_row(p: ProcessedProduct) -> List[str]:
    """Uma linha do relatório; os valores derivados são recalculados aqui."""
    return [
        p.name,
        format_currency(p.unit_cost),
        str(p.quantity),
        p.tariff_rate,
        format_currency(p.initial_cost),
        format_currency(p.allocated_general_cost_sum),
        format_currency(p.allocated_specific_cost_sum),
        format_currency(p.cost_after_general_services),
        format_currency(p.final_cost),
        format_currency(final_unit_cost(p)),
        cost_increase_factor(p),
    ]


def summary_rows(totals: CostTotals) -> List[List[str]]:
    return [
        ["Costo Total de Productos Comprados:", format_currency(totals.total_product_cost)],
        ["Costo Total de Servicios:", format_currency(totals.total_service_cost)],
        ["Costo Total Global de Importación:", format_currency(totals.total_global_cost)],
    ]


def render_summary(totals: CostTotals) -> str:
    rows = summary_rows(totals)
    width = max(len(label) for label, _ in rows)
    return "\n".join(f"{label:<{width}} {value:>20}" for label, value in rows)


def render_results_table(products: Sequence[ProcessedProduct]) -> str:
    if not products:
        return "No hay productos para mostrar."

    rows = [result_row(p) for p in products]
    widths = [len(h) for h in RESULT_HEADERS]
    for r in rows:
        for i, cell in enumerate(r):
            widths[i] = max(widths[i], len(cell))

    def fmt(cells: List[str]) -> str:
        # nome e tasa à esquerda, números à direita
        out = []
        for i, cell in enumerate(cells):
            out.append(cell.ljust(widths[i]) if i in (0, 3) else cell.rjust(widths[i]))
        return " | ".join(out)

    sep = "-+-".join("-" * w for w in widths)
    return "\n".join([fmt(RESULT_HEADERS), sep] + [fmt(r) for r in rows])


def write_results_csv(path: str | Path, products: Sequence[ProcessedProduct]) -> Path:
    path = Path(path)
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow([
            "producto", "costo_unitario", "cantidad", "tasa_arancelaria", "costo_inicial",
            "costo_general_distribuido", "costo_especifico_distribuido",
            "costo_acumulado_generales", "costo_final", "costo_unitario_final", "factor_incremento",
        ])
        for p in products:
            unit_final = final_unit_cost(p)
            w.writerow([
                p.name, p.unit_cost, p.quantity, p.tariff_rate, round(p.initial_cost, DECIMALS),
                round(p.allocated_general_cost_sum, DECIMALS), round(p.allocated_specific_cost_sum, DECIMALS),
                round(p.cost_after_general_services, DECIMALS), round(p.final_cost, DECIMALS),
                "" if unit_final is None else round(unit_final, DECIMALS),
                cost_increase_factor(p),
            ])
    return path


# -----------------------------
# PDF (reportlab)
# -----------------------------

class _PdfReport:
    """Canvas com cursor vertical, quebra de página e rodapé em todas as páginas."""

    margin = 14 * mm
    footer_text = "Calculadora de Costos de Importación"

    def __init__(self, path: Path):
        self.pagesize = landscape(A4)
        self.width, self.height = self.pagesize
        self.c = canvas.Canvas(str(path), pagesize=self.pagesize)
        self.page = 1
        self.y = self.height - self.margin

    def _footer(self) -> None:
        self.c.setFont("Helvetica", 8)
        self.c.setFillGray(0.5)
        self.c.drawString(self.margin, 8 * mm, f"© {date.today().year} - {self.footer_text}")
        self.c.drawRightString(self.width - self.margin, 8 * mm, f"Página {self.page}")
        self.c.setFillGray(0)

    def new_page(self) -> None:
        self._footer()
        self.c.showPage()
        self.page += 1
        self.y = self.height - self.margin

    def ensure(self, needed: float) -> None:
        if self.y - needed < 16 * mm:
            self.new_page()

    def title(self, text: str, size: int = 18) -> None:
        self.c.setFont("Helvetica-Bold", size)
        self.c.drawCentredString(self.width / 2, self.y, text)
        self.y -= size + 4

    def subtitle(self, text: str) -> None:
        self.c.setFont("Helvetica", 10)
        self.c.drawCentredString(self.width / 2, self.y, text)
        self.y -= 22

    def section(self, text: str) -> None:
        self.ensure(40)
        self.c.setFont("Helvetica-Bold", 14)
        self.c.drawString(self.margin, self.y, text)
        self.y -= 18

    def _fit(self, text: str, font: str, size: float, width: float) -> List[str]:
        # quebra nas palavras; palavra maior que a coluna é cortada com "..."
        lines = simpleSplit(text, font, size, width) or [""]
        out = []
        for ln in lines:
            if stringWidth(ln, font, size) > width:
                while ln and stringWidth(ln + "...", font, size) > width:
                    ln = ln[:-1]
                ln += "..."
            out.append(ln)
        return out

    def table(self, headers: List[str], rows: List[List[str]], col_widths: List[float],
              right_cols: Sequence[int] = (), font_size: float = 9) -> None:
        line_h = font_size + 5

        def draw_row(cells: List[str], bold: bool = False) -> None:
            font = "Helvetica-Bold" if bold else "Helvetica"
            wrapped = [self._fit(cell, font, font_size, col_widths[i] - 4) for i, cell in enumerate(cells)]
            n_lines = max(len(w) for w in wrapped)
            if self.y - line_h * n_lines < 16 * mm:
                self.new_page()
                if not bold:
                    draw_row(headers, bold=True)   # repete cabeçalho

            self.c.setFont(font, font_size)
            x = self.margin
            for i, lines in enumerate(wrapped):
                w = col_widths[i]
                for k, ln in enumerate(lines):
                    y = self.y - k * line_h
                    if i in right_cols:
                        self.c.drawRightString(x + w - 2, y, ln)
                    else:
                        self.c.drawString(x + 2, y, ln)
                x += w
            self.y -= line_h * n_lines

        self.ensure(line_h * 2)
        draw_row(headers, bold=True)
        self.c.line(self.margin, self.y + line_h - 3, self.margin + sum(col_widths), self.y + line_h - 3)
        for r in rows:
            draw_row(r)
        self.y -= 10

    def save(self) -> None:
        self._footer()
        self.c.save()


def default_pdf_name(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"InformeCostosImportacion_{today.isoformat()}.pdf"


def export_pdf(
    path: str | Path,
    result: AllocationResult,
    products: Sequence[Product],
    services: Sequence[Service],
    totals: CostTotals,
) -> Path:
    path = Path(path)
    pdf = _PdfReport(path)

    pdf.title("Informe de Costos de Importación")
    pdf.subtitle(f"Fecha de generación: {date.today().strftime('%d/%m/%Y')}")

    pdf.section("Resumen de Costos Totales")
    pdf.table(["Descripción", "Monto"], summary_rows(totals), [90 * mm, 50 * mm], right_cols=(1,))

    pdf.section("Detalle de Productos Calculados")
    pdf.table(
        RESULT_HEADERS,
        [result_row(p) for p in result.products],
        [40 * mm, 22 * mm, 12 * mm, 22 * mm] + [24 * mm] * 6 + [18 * mm],
        right_cols=(1, 2, 4, 5, 6, 7, 8, 9, 10),
        font_size=6.5,
    )

    if result.gaps:
        pdf.section("Costos No Distribuidos")
        pdf.table(
            ["Regla", "Servicios", "Costo"],
            [[g.rule, str(g.service_count), format_currency(g.total_cost)] for g in result.gaps],
            [60 * mm, 25 * mm, 50 * mm],
            right_cols=(1, 2),
        )

    pdf.section("Productos Cargados (Entrada)")
    pdf.table(
        ["Nombre Producto", "Costo Unitario", "Cantidad", "Tasa Arancelaria"],
        [[p.name, format_currency(p.unit_cost), str(p.quantity), p.tariff_rate] for p in products],
        [80 * mm, 45 * mm, 30 * mm, 50 * mm],
        right_cols=(1, 2),
    )

    pdf.section("Servicios Cargados (Entrada)")
    pdf.table(
        ["Proveedor", "Servicio", "Costo", "Regla de Distribución"],
        [[s.provider_name, s.service_name, format_currency(s.cost), s.distribution_rule] for s in services],
        [60 * mm, 70 * mm, 45 * mm, 50 * mm],
        right_cols=(2,),
    )

    pdf.save()
    return path
