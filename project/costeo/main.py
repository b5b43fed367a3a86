import argparse
import logging
import sys
from pathlib import Path

from .io import read_text
from .report import (
    default_pdf_name,
    export_pdf,
    format_currency,
    render_results_table,
    render_summary,
    write_results_csv,
)
from .services import process


def _parse_args(argv=None) -> argparse.Namespace:
    base_dir = Path(__file__).resolve().parents[1]
    data = base_dir / "data"

    ap = argparse.ArgumentParser(
        prog="costeo",
        description="Distribuye costos de servicios y aranceles para obtener el costo final de cada producto.",
    )
    ap.add_argument("--productos", type=Path, default=data / "productos.csv",
                    help="Nombre,CostoUnitario,Cantidad,TasaArancelaria (ej: Laptop,1200,10,ELECTRO_T1)")
    ap.add_argument("--servicios", type=Path, default=data / "servicios.csv",
                    help="Proveedor,Servicio,Costo,ReglaDistribucion (ej: AgenteX,Flete,100,comun)")
    ap.add_argument("--csv", type=Path, default=None, help="salva o resultado em CSV")
    ap.add_argument("--pdf", type=Path, nargs="?", const=Path(default_pdf_name()), default=None,
                    help="gera o informe em PDF")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        products_text = read_text(args.productos, "productos")
        services_text = read_text(args.servicios, "servicios")
        products, services, totals, result = process(products_text, services_text)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("Productos:", len(products), "| Servicios:", len(services))
    print()
    print(render_summary(totals))
    print()
    print(render_results_table(result.products))

    for g in result.gaps:
        print(f"\n[NO DISTRIBUIDO] regla '{g.rule}' | {g.service_count} servicio(s) | {format_currency(g.total_cost)}")

    try:
        if args.csv:
            out = write_results_csv(args.csv, result.products)
            print("\nCSV generado:", out)

        if args.pdf:
            out = export_pdf(args.pdf, result, products, services, totals)
            print("\nPDF generado:", out)
    except OSError as e:
        print(f"Error: no se pudo escribir {e.filename or 'el archivo'}: {e.strerror or e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
