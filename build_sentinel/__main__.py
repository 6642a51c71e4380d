"""Allow ``python -m build_sentinel``."""

from build_sentinel.cli import main

if __name__ == "__main__":
    main()
