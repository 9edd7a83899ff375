"""Run the taskq CLI with ``python -m taskq``."""

from taskq import cli


if __name__ == "__main__":
    cli.main()
