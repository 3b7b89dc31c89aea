"""Allow running postmaint as ``python -m postmaint``."""

from postmaint.cli import main

if __name__ == "__main__":
    main()
