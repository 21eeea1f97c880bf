"""Allow ``python -m mediacap``."""

from .cli.main import cli_main

cli_main()
