"""Entry point for running messenger-gateway as a module."""

from messenger_gateway.cli.commands import app

if __name__ == "__main__":
    app()
