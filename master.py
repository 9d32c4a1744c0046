#!/usr/bin/env python3
"""
master.py — Commute cost ledger: attendance sheet → matched facts → costs.

Registry commands (people, work patterns, unit rate) read and write the JSON
store given by --store (default: data/commute_store.json).

Sheet commands take a workbook (.xlsx/.xlsm/.csv) plus a column mapping:
  --name-col   column holding names          (letter or 0-based index)
  --date-start first date / work-code column
  --date-end   last date column (table layout only)
  --start-row  first data row, 1-based
  --layout     table (dates across) | row (one fact per row)

Examples:
  python master.py person-add 山田太郎 --job 管理駅 --station 大月駅 --station-km 12 \
      --car --distance 河口湖駅=20
  python master.py pattern-add 日勤 --location 大月駅 --train possible
  python master.py preview shifts.xlsx --sheet 6月 --name-col B --date-start D --date-end AH --start-row 6 \
      --csv out/通勤費集計.csv --xlsx out/preview.xlsx
  python master.py save-month shifts.xlsx --month 2025-06 --name-col B --date-start D --date-end AH --start-row 6

Exit codes: 0 ok, 2 bad input (unreadable file, bad mapping, validation).
"""

from __future__ import annotations

import argparse
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from attendance_summary import (
    analyze_work_patterns,
    bulk_analyze,
    fact_cost,
    fact_method,
    filter_facts,
    monthly_calendar,
    summarize_facts,
)
from commute_common import DEFAULT_STORE, JOB_TYPE_STATIONS, OUT, STATIONS, ensure_dirs, info, ok, warn
from export_writer import (
    cost_summary_frame,
    pattern_frame,
    preview_sheets,
    write_csv_bom,
    write_workbook,
)
from grid_extractor import (
    LAYOUT_TABLE,
    LAYOUTS,
    ColumnMapping,
    ExtractionError,
    build_preview,
    column_index,
    describe_columns,
)
from kv_store import JsonFileStore, StoreFormatError
from matcher import rename_fact
from monthly_snapshot import SnapshotError, delete_month, list_months, load_month, save_month
from name_normalizer import normalize_name
from pattern_scoring import match_with_patterns
from registry import TRIP_TYPES, TRAIN_COMMUTE_VALUES, Registry, RegistryFormatError, ValidationError
from workbook_reader import WorkbookReadError, list_sheets, read_sheet_as_grid

USER_ERRORS = (
    ValidationError,
    RegistryFormatError,
    ExtractionError,
    WorkbookReadError,
    SnapshotError,
    StoreFormatError,
)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _open(args) -> tuple[JsonFileStore, Registry]:
    store = JsonFileStore(args.store)
    return store, Registry.load(store)


def _mapping(args) -> ColumnMapping:
    return ColumnMapping(
        name_column=column_index(args.name_col),
        date_start_column=column_index(args.date_start),
        date_end_column=column_index(args.date_end) if args.date_end is not None else None,
        start_row=args.start_row,
    )


def _parse_renames(pairs: list[str]) -> dict[str, str]:
    out = {}
    for pair in pairs or []:
        old, sep, new = pair.partition("=")
        # fact names are normalized; match the key the same way
        old = normalize_name(old)
        if not sep or not old:
            raise ValidationError(f"--rename expects OLD=NEW, got {pair!r}")
        out[old] = new.strip()
    return out


def _load_facts(args, registry: Registry):
    grid = read_sheet_as_grid(args.file, args.sheet)
    facts = build_preview(grid, _mapping(args), registry, layout=args.layout)
    renames = _parse_renames(args.rename)
    if renames:
        facts = [rename_fact(f, renames[f.name], registry) if f.name in renames else f for f in facts]
    return facts


def _yen(x) -> str:
    return f"{x:,.0f}"


# ---------------------------------------------------------------------------
# Sheet commands
# ---------------------------------------------------------------------------

def cmd_sheets(args) -> int:
    if args.columns:
        grid = read_sheet_as_grid(args.file, args.sheet)
        for label in describe_columns(grid):
            print(label)
        return 0
    for name in list_sheets(args.file):
        print(name)
    return 0


def cmd_preview(args) -> int:
    _, registry = _open(args)
    facts = _load_facts(args, registry)
    if not facts:
        warn("no attendance found with this column mapping")
        return 0

    summary = summarize_facts(facts, registry)
    print(f"records: {summary['totalRecords']}  OK: {summary['registeredCount']}  "
          f"未登録: {summary['unregisteredCount']}  自家用車なし: {summary['noCarCount']}")
    print("出勤先別:", " | ".join(f"{k}: {v}件" for k, v in summary["locationStats"].items()))
    print("勤務パターン別:", " | ".join(f"{k}: {v}件" for k, v in summary["workPatternStats"].items()))
    print(f"合計通勤費: {_yen(summary['totalCost'])}円")

    shown = filter_facts(facts, name=args.person, status=args.status)
    for f in shown[: args.limit]:
        cost = fact_cost(f, registry)
        method = fact_method(f, registry) if f.person is not None else ""
        print(f"{f.source_row:>4}  {f.name}  {f.date}({f.day_of_week})  {f.original_value} -> {f.location}  "
              f"[{f.status}]  {_yen(cost)}円  {method}")
    if len(shown) > args.limit:
        info(f"{len(shown) - args.limit} more rows not shown (use --limit)")

    if args.calendar:
        for pa in analyze_work_patterns(shown, registry):
            cal = monthly_calendar(pa.days)
            top = pa.most_frequent_location
            print()
            print(f"{pa.name} ({pa.status})  勤務日数 {pa.work_days}  予想通勤費 {_yen(pa.total_cost)}円")
            if top:
                print(f"最多勤務場所: {top[0]} ({top[1]}日)")
            if cal is not None:
                print(cal.render())

    if args.csv:
        print("Wrote:", write_csv_bom(cost_summary_frame(facts, registry), args.csv))
    if args.xlsx:
        sheets = preview_sheets(facts, registry, match_with_patterns(facts, registry))
        print("Wrote:", write_workbook(sheets, args.xlsx))
    return 0


def cmd_bulk(args) -> int:
    _, registry = _open(args)
    facts = _load_facts(args, registry)
    bulk = bulk_analyze(facts, registry)
    print(f"総人数 {bulk.total_people}  登録済み {bulk.registered}  未登録 {bulk.unregistered}  "
          f"自家用車なし {bulk.no_car}  総勤務日数 {bulk.total_work_days}  総通勤費 {_yen(bulk.total_cost)}円")
    for label, group in (("登録済み・計算可能", bulk.registered_people), ("未登録・計算不可", bulk.other_people)):
        if not group:
            continue
        print(f"\n{label} ({len(group)}名)")
        for pa in group:
            breakdown = ", ".join(f"{loc}: {n}日" for loc, n in pa.location_breakdown())
            note = "" if pa.status == "OK" else f"  ※{pa.status}"
            print(f"  {pa.name}  {pa.work_days}日勤務  {_yen(pa.total_cost)}円  {breakdown}{note}")
    return 0


def cmd_match_patterns(args) -> int:
    _, registry = _open(args)
    if not registry.patterns:
        warn("no work patterns registered; every person will score 0")
    facts = _load_facts(args, registry)
    results = match_with_patterns(facts, registry)
    for r in results:
        best = r.best_pattern.name if r.best_pattern else "-"
        print(f"{r.person_name}  {r.message}  days={len(r.days)}  best={best}")
    if args.csv:
        print("Wrote:", write_csv_bom(pattern_frame(results), args.csv))
    return 0


def cmd_save_month(args) -> int:
    store, registry = _open(args)
    facts = _load_facts(args, registry)
    record = save_month(store, args.month, facts, registry)
    ok(f"Saved {args.month}: {record['totalRecords']} records, total {_yen(record['summary']['totalCost'])}円")
    return 0


def cmd_months(args) -> int:
    store = JsonFileStore(args.store)
    if args.delete:
        if not delete_month(store, args.delete):
            warn(f"{args.delete} was not saved")
        else:
            ok(f"Deleted {args.delete}")
        return 0
    if args.show:
        record = load_month(store, args.show)
        if record is None:
            print(f"ERROR: no snapshot for {args.show}", file=sys.stderr)
            return 2
        s = record.get("summary") or {}
        print(f"{record['month']}  saved {record.get('savedAt', '')}  records {record.get('totalRecords', 0)}  "
              f"total {_yen(s.get('totalCost', 0))}円")
        for name, st in (s.get("peopleStats") or {}).items():
            print(f"  {name}  {st.get('workDays', 0)}日  {_yen(st.get('totalCost', 0))}円  [{st.get('status', '')}]")
        return 0
    for m in list_months(store):
        print(m)
    return 0


# ---------------------------------------------------------------------------
# Registry commands
# ---------------------------------------------------------------------------

def _parse_distances(pairs: list[str]) -> dict[str, str]:
    out = {}
    for pair in pairs or []:
        station, sep, km = pair.partition("=")
        if not sep:
            raise ValidationError(f"--distance expects STATION=KM, got {pair!r}")
        out[station.strip()] = km.strip()
    return out


def _find_person(registry: Registry, key: str):
    return registry.get_person(key) or registry.person_by_name(key)


def cmd_person_add(args) -> int:
    store, registry = _open(args)
    person = registry.add_person(
        args.name,
        args.job,
        nearest_station=args.station,
        nearest_station_distance=args.station_km,
        has_private_car=args.car,
        distances=_parse_distances(args.distance),
    )
    registry.save(store)
    ok(f"Added {person.name} ({person.id})")
    return 0


def cmd_person_list(args) -> int:
    _, registry = _open(args)
    for p in registry.people:
        station = f"{p.nearest_station} {p.nearest_station_distance or 0:g}km" if p.nearest_station else "-"
        car = ", ".join(f"{s} {km:g}km" for s, km in (p.distances or {}).items()) if p.has_private_car else "なし"
        print(f"{p.id}  {p.name}  [{'/'.join(p.job_types)}]  最寄駅: {station}  自家用車: {car}")
    info(f"{len(registry.people)} people")
    return 0


def cmd_person_delete(args) -> int:
    store, registry = _open(args)
    person = _find_person(registry, args.key)
    if person is None:
        print(f"ERROR: no person {args.key!r}", file=sys.stderr)
        return 2
    registry.delete_person(person.id)
    registry.save(store)
    ok(f"Deleted {person.name}")
    return 0


def cmd_pattern_add(args) -> int:
    store, registry = _open(args)
    pattern = registry.add_pattern(args.name, args.location, args.train, args.trip)
    registry.save(store)
    ok(f"Added pattern {pattern.name} @ {pattern.work_location} ({pattern.id})")
    return 0


def cmd_pattern_list(args) -> int:
    _, registry = _open(args)
    for p in registry.patterns:
        print(f"{p.id}  {p.name}  {p.work_location}  train={p.train_commute}  trip={p.trip_type}")
    info(f"{len(registry.patterns)} patterns")
    return 0


def cmd_pattern_delete(args) -> int:
    store, registry = _open(args)
    by_id = registry.get_pattern(args.key)
    matches = [by_id] if by_id is not None else [p for p in registry.patterns if p.name == args.key]
    if not matches:
        print(f"ERROR: no pattern {args.key!r}", file=sys.stderr)
        return 2
    if len(matches) > 1:
        print(f"ERROR: {args.key!r} names {len(matches)} patterns; delete by id", file=sys.stderr)
        return 2
    registry.delete_pattern(matches[0].id)
    registry.save(store)
    ok(f"Deleted pattern {matches[0].name}")
    return 0


def cmd_set_rate(args) -> int:
    store, registry = _open(args)
    registry.set_unit_rate(args.rate)
    registry.save(store)
    ok(f"Unit rate: {registry.unit_rate:g} 円/km")
    return 0


def cmd_export_json(args) -> int:
    _, registry = _open(args)
    out = Path(args.path) if args.path else Path(args.out) / f"通勤費データ_{date.today().isoformat()}.json"
    ensure_dirs(out.parent)
    out.write_text(registry.export_json(), encoding="utf-8")
    print("Wrote:", out)
    return 0


def cmd_import_json(args) -> int:
    store, registry = _open(args)
    try:
        text = Path(args.path).read_text(encoding="utf-8")
    except OSError as e:
        print(f"ERROR: cannot read {args.path}: {e}", file=sys.stderr)
        return 2
    registry.import_json(text)
    registry.save(store)
    s = registry.summary()
    ok(f"Loaded {s['people']} people, {s['patterns']} patterns, unit rate {s['unit_rate']:g}")
    return 0


def cmd_clear_all(args) -> int:
    if not args.yes:
        print("ERROR: clear-all deletes every person, pattern and setting; pass --yes", file=sys.stderr)
        return 2
    store, registry = _open(args)
    registry.clear_all()
    registry.save(store)
    ok("Cleared registry")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Commute cost ledger for attendance sheets.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--store", default=str(DEFAULT_STORE), help="JSON store for registry and snapshots")
    parser.add_argument("--out", default=str(OUT), help="Default output directory")
    sub = parser.add_subparsers(dest="command", required=True)

    sheet = argparse.ArgumentParser(add_help=False)
    sheet.add_argument("file", help="Attendance workbook (.xlsx/.xlsm/.csv)")
    sheet.add_argument("--sheet", default=None, help="Sheet name (default: first)")
    sheet.add_argument("--layout", choices=LAYOUTS, default=LAYOUT_TABLE)
    sheet.add_argument("--name-col", required=True)
    sheet.add_argument("--date-start", required=True)
    sheet.add_argument("--date-end", default=None)
    sheet.add_argument("--start-row", type=int, required=True)
    sheet.add_argument("--rename", action="append", metavar="OLD=NEW",
                       help="Correct a sheet name before matching (repeatable)")

    p = sub.add_parser("sheets", help="List sheet names, or the columns of one sheet")
    p.add_argument("file")
    p.add_argument("--sheet", default=None)
    p.add_argument("--columns", action="store_true", help="Describe columns for choosing a mapping")
    p.set_defaults(func=cmd_sheets)

    p = sub.add_parser("preview", parents=[sheet], help="Extract, match and cost a sheet")
    p.add_argument("--person", default=None, help="Only show this name")
    p.add_argument("--status", default=None, help="Only show this status (OK / 自家用車なし / 未登録)")
    p.add_argument("--limit", type=int, default=50)
    p.add_argument("--calendar", action="store_true", help="Per-person breakdown and monthly calendar")
    p.add_argument("--csv", default=None, help="Write cost summary CSV (UTF-8 BOM)")
    p.add_argument("--xlsx", default=None, help="Write detail/summary/pattern workbook")
    p.set_defaults(func=cmd_preview)

    p = sub.add_parser("bulk", parents=[sheet], help="Per-person totals")
    p.set_defaults(func=cmd_bulk)

    p = sub.add_parser("match-patterns", parents=[sheet], help="Score each person against work patterns")
    p.add_argument("--csv", default=None, help="Write pattern analysis CSV (UTF-8 BOM)")
    p.set_defaults(func=cmd_match_patterns)

    p = sub.add_parser("save-month", parents=[sheet], help="Save a monthly snapshot")
    p.add_argument("--month", required=True, help="YYYY-MM")
    p.set_defaults(func=cmd_save_month)

    p = sub.add_parser("months", help="List, show or delete monthly snapshots")
    grp = p.add_mutually_exclusive_group()
    grp.add_argument("--show", metavar="YYYY-MM")
    grp.add_argument("--delete", metavar="YYYY-MM")
    p.set_defaults(func=cmd_months)

    p = sub.add_parser("person-add", help="Register a person")
    p.add_argument("name")
    p.add_argument("--job", action="append", required=True, choices=list(JOB_TYPE_STATIONS))
    p.add_argument("--station", default=None, choices=list(STATIONS), help="Nearest station")
    p.add_argument("--station-km", default=None, help="Distance to nearest station (km)")
    p.add_argument("--car", action="store_true", help="Commutes by private car")
    p.add_argument("--distance", action="append", metavar="STATION=KM")
    p.set_defaults(func=cmd_person_add)

    p = sub.add_parser("person-list", help="List registered people")
    p.set_defaults(func=cmd_person_list)

    p = sub.add_parser("person-delete", help="Delete a person by id or exact name")
    p.add_argument("key")
    p.set_defaults(func=cmd_person_delete)

    p = sub.add_parser("pattern-add", help="Register a work pattern")
    p.add_argument("name")
    p.add_argument("--location", required=True, choices=list(STATIONS))
    p.add_argument("--train", required=True, choices=list(TRAIN_COMMUTE_VALUES))
    p.add_argument("--trip", default="roundtrip", choices=list(TRIP_TYPES))
    p.set_defaults(func=cmd_pattern_add)

    p = sub.add_parser("pattern-list", help="List work patterns")
    p.set_defaults(func=cmd_pattern_list)

    p = sub.add_parser("pattern-delete", help="Delete a work pattern by id or name")
    p.add_argument("key")
    p.set_defaults(func=cmd_pattern_delete)

    p = sub.add_parser("set-rate", help="Set the unit rate (円/km)")
    p.add_argument("rate")
    p.set_defaults(func=cmd_set_rate)

    p = sub.add_parser("export-json", help="Export the registry as JSON")
    p.add_argument("path", nargs="?", default=None)
    p.set_defaults(func=cmd_export_json)

    p = sub.add_parser("import-json", help="Import registry JSON (overwrites the sections present)")
    p.add_argument("path")
    p.set_defaults(func=cmd_import_json)

    p = sub.add_parser("clear-all", help="Delete every person, pattern and setting")
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_clear_all)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except USER_ERRORS as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
