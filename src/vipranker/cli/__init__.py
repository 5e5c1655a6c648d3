"""
vipranker CLI - Command-line interface for OPLS-DA VIP ranking.

Commands:
    vipranker rank   - Rank features by VIP across group comparisons
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for vipranker."""
    parser = argparse.ArgumentParser(
        prog="vipranker",
        description="OPLS-DA VIP ranking of proteomic features across group comparisons",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  rank          Fit OPLS-DA per comparison and rank features by VIP

Examples:
  vipranker rank --input olink.xlsx --output opls_results
  vipranker rank --config ranking.yaml --n-permutations 100
  vipranker rank --input data.csv --families pairwise --cv-folds 7
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from vipranker.cli import rank
    rank.register_parser(subparsers)

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Raw arguments after the subcommand name, for config override detection
    cli_args = list(args[1:]) if args is not None else None
    return parsed_args.func(parsed_args, cli_args=cli_args)


if __name__ == "__main__":
    sys.exit(main())
