"""Allow running tixfile as ``python -m tixfile``."""

from tixfile.cli import main

if __name__ == "__main__":
    main()
