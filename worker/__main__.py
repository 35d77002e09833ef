"""
Worker 진입점

실행 방법:
    python -m worker run
    python -m worker --help
"""

import sys

from worker.cli import main

if __name__ == "__main__":
    sys.exit(main())
