"""Allow ``python -m telehook``."""

from .cli import main

main()
