import sys

from checkforge.cli import run_cli

sys.exit(run_cli())
