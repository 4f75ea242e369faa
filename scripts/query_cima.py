#!/usr/bin/env python3
"""
CIMA Query Script

Looks up medicines, presentations, registration changes, supply problems,
document sections, safety notes, materials, VMP/VMPP and master catalogues
in the AEMPS CIMA REST API and prints JSON.

Usage:
    python3 scripts/query_cima.py medicamento --nregistro 51347
    python3 scripts/query_cima.py medicamento --cn 712729
    python3 scripts/query_cima.py search --nombre paracetamol --all
    python3 scripts/query_cima.py presentacion 712729
    python3 scripts/query_cima.py cambios 01/01/2024 --nregistro 51347
    python3 scripts/query_cima.py suministro --cn 712729
    python3 scripts/query_cima.py maestra lab --nombre cinfa
    python3 scripts/query_cima.py secciones ft --nregistro 51347
    python3 scripts/query_cima.py contenido p --nregistro 51347 --seccion 2
    python3 scripts/query_cima.py notas 51347
    python3 scripts/query_cima.py vmpp --practiv1 ibuprofeno --arbol
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from nomenclator.cima import DEFAULT_BASE_URL, DOCUMENT_TYPES, MAESTRA_TYPES, CimaAPIClient
from nomenclator.common.config_loader import load_cima_settings
from nomenclator.common.errors import CimaAPIError, CimaNotFoundError
from nomenclator.common.log_config import setup_logging

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query the AEMPS CIMA REST API")
    parser.add_argument("--base-url", help="API root (default: from config/pipeline.yaml)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose (debug) logging")
    parser.add_argument("--quiet", action="store_true", help="Show only warnings and errors")

    sub = parser.add_subparsers(dest="command", required=True)

    medicamento = sub.add_parser("medicamento", help="Get one medicine")
    medicamento.add_argument("--nregistro", help="Registration number")
    medicamento.add_argument("--cn", help="National code")

    search = sub.add_parser("search", help="Search medicines")
    search.add_argument("--nombre", help="Name (partial match)")
    search.add_argument("--laboratorio", help="Laboratory name")
    search.add_argument("--atc", help="ATC code")
    search.add_argument("--comerc", type=int, choices=[0, 1], help="Marketed only (1) or not (0)")
    search.add_argument("--pagina", type=int, help="Result page")
    search.add_argument("--all", action="store_true", help="Follow pagination and print every result")

    presentacion = sub.add_parser("presentacion", help="Get one presentation")
    presentacion.add_argument("cn", help="National code")

    cambios = sub.add_parser("cambios", help="Registration changes since a date")
    cambios.add_argument("fecha", help="Start date, dd/mm/yyyy")
    cambios.add_argument("--nregistro", action="append", help="Restrict to registration number (repeatable)")

    suministro = sub.add_parser("suministro", help="Supply problems")
    suministro.add_argument("--cn", help="National code (default: all current problems)")

    maestra = sub.add_parser("maestra", help="Master catalogue lookup")
    maestra.add_argument("tipo", choices=sorted(MAESTRA_TYPES), help="Catalogue")
    maestra.add_argument("--nombre", help="Name filter")
    maestra.add_argument("--codigo", help="Code filter")
    maestra.add_argument("--id", help="Id filter")
    maestra.add_argument("--enuso", type=int, choices=[0, 1], help="Only entries in use")

    for command, description in (("secciones", "Sections of a product document"),
                                 ("contenido", "Section texts of a product document")):
        document = sub.add_parser(command, help=description)
        document.add_argument("tipo", choices=sorted(DOCUMENT_TYPES), help="Document type")
        document.add_argument("--nregistro", help="Registration number")
        document.add_argument("--cn", help="National code")
        if command == "contenido":
            document.add_argument("--seccion", help="Single section, e.g. 4.2")

    notas = sub.add_parser("notas", help="Safety notes of a medicine")
    notas.add_argument("nregistro", help="Registration number")

    materiales = sub.add_parser("materiales", help="Informative materials of a medicine")
    materiales.add_argument("nregistro", help="Registration number")

    vmpp = sub.add_parser("vmpp", help="Search clinical descriptions (VMP/VMPP)")
    vmpp.add_argument("--practiv1", help="Active ingredient name")
    vmpp.add_argument("--dosis", help="Dose")
    vmpp.add_argument("--forma", help="Pharmaceutical form name")
    vmpp.add_argument("--atc", help="ATC code or description")
    vmpp.add_argument("--nombre", help="Medicine name")
    vmpp.add_argument("--pagina", type=int, help="Result page")
    vmpp.add_argument("--arbol", action="store_true", help="Hierarchical VMP -> VMPP result")

    return parser


def run_command(client: CimaAPIClient, args):
    if args.command == "medicamento":
        return client.get_medicamento(nregistro=args.nregistro, cn=args.cn)
    if args.command == "search":
        filters = {
            'nombre': args.nombre,
            'laboratorio': args.laboratorio,
            'atc': args.atc,
            'comerc': args.comerc,
        }
        if args.all:
            return list(client.iter_medicamentos(**filters))
        return client.search_medicamentos(pagina=args.pagina, **filters)
    if args.command == "presentacion":
        return client.get_presentacion(args.cn)
    if args.command == "cambios":
        return client.get_registro_cambios(args.fecha, args.nregistro)
    if args.command == "suministro":
        return client.get_problemas_suministro(args.cn)
    if args.command == "maestra":
        return client.get_maestra(args.tipo, nombre=args.nombre, codigo=args.codigo,
                                  id=args.id, enuso=args.enuso)
    if args.command == "secciones":
        return client.get_secciones(args.tipo, nregistro=args.nregistro, cn=args.cn)
    if args.command == "contenido":
        return client.get_contenido(args.tipo, nregistro=args.nregistro, cn=args.cn, seccion=args.seccion)
    if args.command == "notas":
        return client.get_notas(args.nregistro)
    if args.command == "materiales":
        return client.get_materiales(args.nregistro)
    if args.command == "vmpp":
        return client.search_vmpp(modo_arbol=args.arbol, practiv1=args.practiv1, dosis=args.dosis,
                                  forma=args.forma, atc=args.atc, nombre=args.nombre, pagina=args.pagina)
    raise ValueError(f"Unknown command: {args.command}")


def main():
    args = build_parser().parse_args()
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    settings = load_cima_settings()
    base_url = args.base_url or os.getenv("CIMA_BASE_URL") or settings.get("base_url") or DEFAULT_BASE_URL
    timeout = settings.get("timeout", 30)

    with CimaAPIClient(base_url=base_url, timeout=timeout) as client:
        try:
            result = run_command(client, args)
        except CimaNotFoundError as e:
            logger.error("Not found: %s", e)
            sys.exit(3)
        except (CimaAPIError, ValueError) as e:
            logger.error("%s", e)
            sys.exit(1)

    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
