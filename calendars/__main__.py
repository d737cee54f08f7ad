"""Module entry: ``python -m calendars``."""

from __future__ import annotations

import sys
from typing import List, Optional

from .cli.main import main as _cli_main


def main(argv: Optional[List[str]] = None) -> None:
    sys.exit(_cli_main(argv))


if __name__ == "__main__":
    main()
