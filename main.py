"""
main.py
--------
Entry point for the Transaction Pattern Detection Engine.

Reads a transactions CSV (description, amount, date and optionally id,
direction / transaction_type), runs detection, and writes the ranked
patterns to the outputs/ folder.

Usage (from the project root):
    python main.py --input path/to/transactions.csv

    # With optional arguments:
    python main.py --input txns.csv --existing bills.csv
    python main.py --input txns.csv --strategy amount --direction inflow
    python main.py --input txns.csv --lookback 180 --recurring-only
"""

import sys
import os
import argparse
import logging
import pandas as pd
from datetime import datetime

# Ensure project root is on path (for runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from pipeline import PatternDetectionPipeline
from grouping.strategies import STRATEGY_REGISTRY


# =============================================================================
# LOGGING SETUP
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("main")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Transaction Pattern Detection Engine: detect recurring bills and income."
    )
    parser.add_argument(
        "--input", type=str, required=True,
        help="Path to input transactions CSV."
    )
    parser.add_argument(
        "--existing", type=str, default=None,
        help="Optional CSV of already-tracked bills / income (amount, frequency) to suppress."
    )
    parser.add_argument(
        "--strategy", type=str, default=None,
        choices=sorted(STRATEGY_REGISTRY.keys()),
        help="Clustering strategy. Defaults to the config value (name)."
    )
    parser.add_argument(
        "--direction", type=str, default=None,
        choices=["inflow", "outflow"],
        help="Only analyze inflows (income) or outflows (bills)."
    )
    parser.add_argument(
        "--lookback", type=int, default=None,
        help="Only consider transactions within this many days of the latest one."
    )
    parser.add_argument(
        "--recurring-only", action="store_true", default=False,
        help="Drop possible one-time payments from the output."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Output directory. Defaults to outputs/ in project root."
    )
    return parser.parse_args(argv)


# =============================================================================
# MAIN
# =============================================================================

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    output_dir = args.output_dir or os.path.join(PROJECT_ROOT, "outputs")
    os.makedirs(output_dir, exist_ok=True)

    # --- Load transactions ---
    logger.info(f"Loading transactions from: {args.input}")
    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        return 1
    transactions = pd.read_csv(args.input)
    logger.info(f"Loaded {len(transactions):,} transactions.")

    existing = []
    if args.existing:
        if not os.path.exists(args.existing):
            logger.error(f"Existing records file not found: {args.existing}")
            return 1
        existing = pd.read_csv(args.existing).to_dict("records")
        logger.info(f"Loaded {len(existing):,} existing records for deduplication.")

    # --- Run pipeline ---
    pipeline = PatternDetectionPipeline()
    patterns = pipeline.run(
        transactions,
        existing=existing,
        options={
            "cluster_strategy": args.strategy,
            "direction": args.direction,
            "lookback_days": args.lookback,
        },
    )

    if args.recurring_only:
        patterns = [p for p in patterns if p.is_recurring]
        logger.info(f"Recurring only: {len(patterns):,} patterns kept.")

    # --- Output ---
    output_df = pipeline.to_frame(patterns)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_path = os.path.join(output_dir, f"patterns_{timestamp}.csv")
    output_df.to_csv(output_path, index=False)
    logger.info(f"Patterns saved to: {output_path}")

    _print_summary(output_df)
    return 0


def _print_summary(df: pd.DataFrame):
    """Prints a clean summary table to the console."""
    if df.empty:
        print("\n  No patterns to display.\n")
        return

    print("\n" + "=" * 80)
    print("  PATTERN DETECTION SUMMARY")
    print("=" * 80)

    print("\n  Patterns by Frequency:")
    print("  " + "-" * 60)
    for frequency in df["frequency"].unique():
        subset = df[df["frequency"] == frequency]
        recurring = subset["is_recurring"].sum()
        print(f"    {frequency:12s}  {len(subset):>5,} patterns  (recurring: {recurring})")

    print(f"\n  Top Patterns:")
    print("  " + "-" * 60)
    for _, row in df.head(10).iterrows():
        marker = "R" if row["is_recurring"] else " "
        print(
            f"    [{marker}] {row['name'][:30]:30s}  ${row['representative_amount']:>10,.2f}"
            f"  {row['frequency']:10s}  {row['confidence']:>3}"
        )
    print("=" * 80 + "\n")


if __name__ == "__main__":
    sys.exit(main())
