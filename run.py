"""
Runnable script for the Ordinals indexer.
"""

import argparse

from ordinals.main import RUN_MODES, main


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ordinals inscription indexer")
    parser.add_argument(
        "--mode",
        choices=RUN_MODES,
        help="default runs the event server and the API, writeonly only the event server, readonly only the API",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args()

    main(run_mode=args.mode, debug=args.debug)
