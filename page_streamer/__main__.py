"""Allow ``python -m page_streamer`` to launch the streamer."""

from __future__ import annotations

import sys


def main() -> None:
    from page_streamer import run
    raise SystemExit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
