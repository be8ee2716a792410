"""Allow ``python -m scanspine``."""

from scanspine.cli.app import app

app(prog_name="scanspine")
