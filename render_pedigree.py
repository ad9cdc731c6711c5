#!/usr/bin/env python3
import argparse
import logging
import sys
from pathlib import Path

from pedigree_analyzer import (
    InheritancePattern,
    LayoutSettings,
    PedigreeError,
    compute_layout,
    generate_risk_report,
    load_pedigree,
    mutate,
    save_pedigree,
)
from pedigree_analyzer.svg import SvgChart

LOGGER = logging.getLogger("render_pedigree")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lay out a pedigree JSON file, compute genetic risks and render it to SVG.")
    parser.add_argument("input_json", type=Path, help="Path to input JSON file.")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("pedigree.svg"),
        help="Path to output SVG file (default: pedigree.svg).",
    )
    parser.add_argument(
        "--pattern",
        choices=[p.value for p in InheritancePattern],
        help="Override the inheritance pattern stored in the file.",
    )
    parser.add_argument("--carrier-frequency", type=float, help="Override the population carrier frequency (0 < f < 1).")
    parser.add_argument("--spacing", type=float, default=LayoutSettings.spacing, help="Horizontal spacing between symbols (default: 140).")
    parser.add_argument("--report", type=Path, help="Also write the text risk report to this path.")
    parser.add_argument("--save-json", type=Path, help="Also write the recomputed pedigree JSON to this path.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s: %(message)s")

    settings = LayoutSettings(spacing=args.spacing)
    try:
        pedigree = load_pedigree(args.input_json, settings)
        if args.pattern:
            mutate(pedigree, "set_inheritance_pattern", pattern=args.pattern, settings=settings)
        if args.carrier_frequency is not None:
            mutate(pedigree, "set_carrier_frequency", value=args.carrier_frequency, settings=settings)
    except PedigreeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    SvgChart(pedigree, compute_layout(pedigree, settings)).save(args.output)
    LOGGER.info("Wrote %s", args.output)
    if args.report:
        args.report.write_text(generate_risk_report(pedigree), encoding="utf-8")
        LOGGER.info("Wrote %s", args.report)
    if args.save_json:
        save_pedigree(pedigree, args.save_json)
        LOGGER.info("Wrote %s", args.save_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
