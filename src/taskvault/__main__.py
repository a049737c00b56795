"""Allow ``python -m taskvault``."""

from taskvault.cli import main

main()
