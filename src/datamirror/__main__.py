"""Allow ``python -m datamirror``."""

from datamirror.app import main

if __name__ == "__main__":
    main()
