"""
Construction Site Scheduler
===========================

Command-line entry point: runs the sample project through the scheduling
pipeline and prints its report.
"""

import argparse
import logging
import sys

from .examples.simple_project import SAMPLE_WEATHER, create_sample_project


def main(argv=None):
    parser = argparse.ArgumentParser(description="Construction Site Scheduler")
    parser.add_argument(
        "--example", action="store_true", help="Run the example project"
    )
    parser.add_argument(
        "--perspective",
        choices=["strict", "balanced", "flexible"],
        default="balanced",
        help="Conflict analysis sensitivity",
    )
    parser.add_argument(
        "--export",
        type=str,
        default=None,
        help="Write the schedule as Project XML to this file",
    )
    parser.add_argument(
        "--network",
        type=str,
        default=None,
        help="Output filename for the network diagram",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if not args.example:
        parser.print_help()
        return 1

    print("Running example project...")
    scheduler = create_sample_project(perspective=args.perspective)
    print(scheduler.generate_report(weather=SAMPLE_WEATHER))

    if args.export:
        with open(args.export, "w", encoding="utf-8") as f:
            f.write(scheduler.export_xml())
        print(f"Project XML saved to {args.export}")

    if args.network:
        # Imported here so the report does not require a plotting backend
        import matplotlib

        matplotlib.use("Agg")
        from .visualization.network import create_network_diagram

        create_network_diagram(scheduler, args.network, show=False)
        print(f"Network diagram saved to {args.network}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
