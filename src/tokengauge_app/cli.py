import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv


def parse_args(description: str, argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Common command line for the surfaces: just ``--config``."""
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--config",
        type=Path,
        default=os.getenv("TOKENGAUGE_CONFIG") or None,
        help="Path to config.toml (env: TOKENGAUGE_CONFIG)",
    )
    return parser.parse_args(argv)


def setup_logging(handlers: Optional[List[logging.Handler]] = None) -> None:
    """
    Load ``.env`` and configure logging.

    Without explicit handlers logs go to stderr; stdout is reserved for
    surface output (Waybar reads it as JSON).
    """
    load_dotenv()
    level_name = (os.getenv("TOKENGAUGE_LOG_LEVEL") or "WARNING").strip().upper()
    level = getattr(logging, level_name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    if handlers:
        logging.basicConfig(level=level, format="%(message)s", handlers=handlers)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
