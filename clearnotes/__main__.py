"""Package entry point for ``python -m clearnotes``.

RULES:
- Delegates to the CLI's main()
"""

from clearnotes.cli import main

if __name__ == "__main__":
    main()
