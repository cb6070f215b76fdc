"""Allow `python -m codeaudit`."""

from codeaudit.cli import main

if __name__ == "__main__":
    main()
