"""Allow ``python -m dimspine``."""

from dimspine.cli.app import app

if __name__ == "__main__":
    app()
