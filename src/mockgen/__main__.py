"""Entry point for running mockgen as a module.

Usage:
    python -m mockgen mock https://example.com
    python -m mockgen capture https://example.com --format html
"""

from mockgen.cli import main

if __name__ == "__main__":
    main()
