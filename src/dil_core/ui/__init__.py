"""Command-line surface: argparse router and plain-text summaries."""
