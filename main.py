"""
Run the FDR benchmark from a source checkout.

    python main.py simulate --preset quick_test --benchmark-preset python_only
    python main.py run configs/experiment.yaml

Same interface as the installed ``fdr-benchmark`` command.
"""

import sys

from fdr_benchmark.cli import main


if __name__ == "__main__":
    sys.exit(main())
