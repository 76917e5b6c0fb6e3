import sys
import logging
from typing import List, Optional

from errors import InputUnavailableError
from payments_engine import PaymentsEngine

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.WARNING) -> None:
    # Diagnostics go to stderr; stdout carries only the report.
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: payments-ledger <input.csv>", file=sys.stderr)
        return 1

    configure_logging()

    filepath = args[0]
    engine = PaymentsEngine()
    try:
        engine.process_file(filepath, sys.stdout)
    except InputUnavailableError as e:
        logger.error(str(e))
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
