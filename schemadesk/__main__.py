"""Main entry point when executing schemadesk as a package.

This allows running the package using python -m schemadesk.
"""

from schemadesk.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
