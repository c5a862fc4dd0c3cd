#!/usr/bin/env python3
"""
Jornada Engine - CLI
Registra eventos de jornada e gera relatórios em JSON, PDF, Excel ou CSV.
"""
import argparse
import json
import sys
import os
import logging
from datetime import date, datetime

from jornada.domain.clock import as_utc, utc_now
from jornada.domain.models.value_objects import EventType, Location
from jornada.infrastructure.repositories.json_driver_repository import JsonDriverRepository, load_settings
from core.models import JornadaReport

EVENT_CHOICES = [t.value for t in EventType]


def build_parser():
    parser = argparse.ArgumentParser(
        description="🚛 Jornada Engine CLI - Controle de jornada de motoristas",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exemplos:
  jornada-cli motorista.json                           # Resumo na tela
  jornada-cli motorista.json --start MEAL_START        # Registra início de refeição agora
  jornada-cli motorista.json --end SHIFT_START --at 2024-03-01T17:00:00+00:00
  jornada-cli motorista.json --date 2024-03-01 --pdf   # Relatório de um dia
  jornada-cli motorista.json --all saida/              # Gera todos os formatos
        """
    )
    parser.add_argument("file", help="Arquivo JSON do motorista (driver, settings, events)")
    parser.add_argument("--date", metavar="YYYY-MM-DD", help="Limita o relatório a um dia")
    parser.add_argument("--settings", metavar="FILE", help="Arquivo JSON de configurações da empresa (substitui o do motorista)")

    action = parser.add_mutually_exclusive_group()
    action.add_argument("--start", choices=EVENT_CHOICES, metavar="TYPE", help="Inicia um evento")
    action.add_argument("--end", choices=EVENT_CHOICES, metavar="TYPE", help="Finaliza o evento ativo deste tipo")
    parser.add_argument("--at", metavar="ISO", help="Instante do evento (padrão: agora, UTC se sem fuso)")
    parser.add_argument("--lat", type=float, help="Latitude do evento")
    parser.add_argument("--lon", type=float, help="Longitude do evento")
    parser.add_argument("--accuracy", type=int, default=0, help="Precisão do GPS em metros")

    parser.add_argument("--json", nargs="?", const="auto", metavar="FILE", help="Gera saída JSON (opcional: caminho)")
    parser.add_argument("--pdf", nargs="?", const="auto", metavar="FILE", help="Gera relatório PDF (opcional: caminho)")
    parser.add_argument("--excel", nargs="?", const="auto", metavar="FILE", help="Gera relatório Excel (opcional: caminho)")
    parser.add_argument("--csv", nargs="?", const="auto", metavar="FILE", help="Gera CSV de eventos (opcional: caminho)")
    parser.add_argument("--all", nargs="?", const="auto", metavar="DIR", help="Gera todos os formatos em um diretório")
    parser.add_argument("--summary", action="store_true", help="Mostra resumo textual compacto")
    parser.add_argument("--geocode", action="store_true", help="Converte coordenadas em cidade/UF")
    parser.add_argument("-v", "--verbose", action="store_true", help="Saída de debug")
    parser.add_argument("-q", "--quiet", action="store_true", help="Sem saída na tela (apenas arquivos)")
    return parser


def fail(message):
    print(f"❌ {message}", file=sys.stderr)
    sys.exit(1)


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s"
    )

    if not os.path.isfile(args.file):
        fail(f"Arquivo não encontrado: {args.file}")

    repository = JsonDriverRepository()
    try:
        driver, settings = repository.get(args.file)
        if args.settings:
            settings = load_settings(args.settings)
        day = date.fromisoformat(args.date) if args.date else None
        at = as_utc(datetime.fromisoformat(args.at)) if args.at else utc_now()
        location = None
        if args.lat is not None or args.lon is not None:
            if args.lat is None or args.lon is None:
                fail("--lat e --lon devem ser informados juntos")
            location = Location(args.lat, args.lon, args.accuracy)
    except (OSError, ValueError) as e:
        # DomainError is a ValueError
        fail(f"Erro de leitura: {e}")

    # Command
    notifications = []
    if args.start or args.end:
        if args.start:
            result = driver.start_event(EventType(args.start), at, location=location)
        else:
            result = driver.end_event(EventType(args.end), at, location=location)

        if result.is_failure:
            suggestions = ", ".join(t.value for t in result.suggested_events)
            message = result.error
            if suggestions:
                message += f" (permitidos: {suggestions})"
            fail(message)

        notifications = result.notifications
        repository.save(args.file, driver, settings)
        if not args.quiet:
            for n in notifications:
                print(f"🔔 {describe_notification(n)}")

    report = JornadaReport.from_driver(
        driver, settings,
        filename=os.path.basename(args.file),
        day=day,
        notifications=notifications,
    ).to_dict()

    # Geocoding
    if args.geocode:
        from geocoding_engine import enrich_report_with_addresses
        enrich_report_with_addresses(report)

    # Auto-generate output basename
    basename = os.path.splitext(os.path.basename(args.file))[0]
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    def resolve_path(val, ext, default_dir="."):
        if val == "auto":
            return os.path.join(default_dir, f"{basename}_{timestamp}.{ext}")
        return val

    # --all mode
    if args.all is not None:
        out_dir = args.all if args.all != "auto" else f"{basename}_output"
        os.makedirs(out_dir, exist_ok=True)
        args.json = resolve_path("auto", "json", out_dir)
        args.pdf = resolve_path("auto", "pdf", out_dir)
        args.excel = resolve_path("auto", "xlsx", out_dir)
        args.csv = resolve_path("auto", "csv", out_dir)

    generated = []

    if args.json:
        json_path = resolve_path(args.json, "json")
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False)
        generated.append(("JSON", json_path))

    if args.pdf:
        pdf_path = resolve_path(args.pdf, "pdf")
        try:
            from export_pdf import generate_pdf_report
            generate_pdf_report(report, pdf_path)
            generated.append(("PDF", pdf_path))
        except Exception as e:
            print(f"⚠️ Erro ao gerar PDF: {e}", file=sys.stderr)
            if args.verbose:
                import traceback
                traceback.print_exc()

    if args.excel:
        excel_path = resolve_path(args.excel, "xlsx")
        try:
            from export_manager import ExportManager
            ExportManager.export_to_excel(report, excel_path)
            generated.append(("Excel", excel_path))
        except Exception as e:
            print(f"⚠️ Erro ao gerar Excel: {e}", file=sys.stderr)
            if args.verbose:
                import traceback
                traceback.print_exc()

    if args.csv:
        csv_path = resolve_path(args.csv, "csv")
        from export_manager import ExportManager
        if ExportManager.export_to_csv(report, csv_path):
            generated.append(("CSV", csv_path))

    no_output = not (args.json or args.pdf or args.excel or args.csv)
    if args.summary or (no_output and not args.quiet):
        print_summary(report)

    if not args.quiet and generated:
        print("\n📁 Arquivos gerados:")
        for fmt, path in generated:
            size = os.path.getsize(path)
            print(f"   {fmt}: {path} ({format_size(size)})")


def describe_notification(n):
    name = n.name
    if name == "EventEnded":
        suffix = " (automático)" if n.auto_closed else ""
        return f"{n.type.value} finalizado{suffix}"
    if name == "EventCreated":
        return f"{n.type.value} iniciado em {n.started_at.isoformat()}"
    if name == "DriverStateChanged":
        return f"Estado: {n.previous_state.value} → {n.new_state.value}"
    return name


def print_summary(data):
    """Imprime um resumo compacto na tela."""
    meta = data.get("metadata", {})
    driver = data.get("driver", {})
    summaries = data.get("daily_summaries", [])

    print("=" * 60)
    print("🚛 JORNADA ENGINE - RESUMO")
    print("=" * 60)

    print(f"\n📄 Arquivo: {meta.get('filename', 'N/D')} ({meta.get('event_count', 0)} eventos, {meta.get('timezone', 'UTC')})")
    print(f"\n👤 Motorista: {driver.get('name', 'N/D')}")
    print(f"   CPF: {driver.get('cpf', 'N/D')} | Status: {driver.get('status', 'N/D')}")

    print(f"\n🚦 Estado atual: {data.get('current_state', 'N/D')}")
    allowed = data.get("allowed_events", [])
    if allowed:
        print(f"   Próximos eventos: {', '.join(allowed)}")

    if summaries:
        print(f"\n📊 Jornadas ({len(summaries)} dias):")
        for s in summaries[-7:]:
            print(f"   {s['date']}: 🟦 Trabalho {s['total_worked']} | 🟨 Refeição {s['total_meal']} | "
                  f"🟩 Descanso {s['total_rest']} | Contínuo {s['longest_continuous_work']}")

    anomalies = [(s["date"], a) for s in summaries for a in s.get("anomalies", [])]
    if anomalies:
        print(f"\n⚠️ Anomalias: {len(anomalies)}")
        for day, a in anomalies[:5]:
            print(f"   • {day}: {a}")
        if len(anomalies) > 5:
            print(f"   ... e mais {len(anomalies) - 5}")

    print("\n" + "=" * 60)


def format_size(bytes_val):
    for unit in ['B', 'KB', 'MB']:
        if bytes_val < 1024:
            return f"{bytes_val:.1f} {unit}"
        bytes_val /= 1024
    return f"{bytes_val:.1f} GB"


if __name__ == "__main__":
    main()
