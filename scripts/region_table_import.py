from __future__ import annotations

# Convert a CSV of region centroids into the YAML shape read by
# `nearmap.resolver.regions.load_region_table`.
#
# CSV columns: name, lat, lng, aliases (aliases separated by "|").
# Rows with unusable coordinates are reported and skipped.

import argparse
import csv
from pathlib import Path
from typing import Any

import yaml

from nearmap.core.env import resolve_project_path
from nearmap.core.geo import coerce_float, is_valid_coordinate
from nearmap.resolver.regions import RegionCentroidTable, normalize_region_name


def _split_aliases(value: Any) -> list[str]:
    if value is None:
        return []
    return [a.strip() for a in str(value).split("|") if a.strip()]


def import_rows_from_csv(path: Path) -> list[dict[str, Any]]:
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        return list(csv.DictReader(f))


def build_region_rows(rows: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], list[str]]:
    regions: list[dict[str, Any]] = []
    problems: list[str] = []
    seen: set[str] = set()
    for i, row in enumerate(rows, start=2):
        name = str(row.get("name") or "").strip()
        lat = coerce_float(row.get("lat"))
        lng = coerce_float(row.get("lng") or row.get("lon"))
        if not name:
            problems.append(f"line {i}: missing name")
            continue
        if lat is None or lng is None or not is_valid_coordinate({"lat": lat, "lng": lng}):
            problems.append(f"line {i}: invalid coordinates for {name!r}")
            continue
        key = normalize_region_name(name)
        if key in seen:
            problems.append(f"line {i}: duplicate region {name!r}")
            continue
        seen.add(key)
        entry: dict[str, Any] = {"name": name, "lat": lat, "lng": lng}
        aliases = _split_aliases(row.get("aliases"))
        if aliases:
            entry["aliases"] = aliases
        regions.append(entry)
    return regions, problems


def main() -> int:
    parser = argparse.ArgumentParser(description="Import region centroids from CSV into regions YAML.")
    parser.add_argument("csv_path", type=str)
    parser.add_argument("--out", type=str, default="data/regions/regions.yaml")
    args = parser.parse_args()

    rows = import_rows_from_csv(resolve_project_path(args.csv_path, must_exist=True))
    regions, problems = build_region_rows(rows)
    for p in problems:
        print(f"skip: {p}")

    # Round-trip through the loader's own parser so the output is known-good.
    table = RegionCentroidTable.from_rows(regions)

    out = resolve_project_path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(yaml.safe_dump({"regions": regions}, sort_keys=False, allow_unicode=True), encoding="utf-8")
    print(f"wrote {len(regions)} regions ({len(table)} names incl. aliases) -> {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
