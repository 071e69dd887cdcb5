"""Command line tools for analysing cement mill reading exports."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# The Typer instance stays on ``cli.app.app``; ``cli.app`` must keep resolving
# to the module so tests can monkeypatch names such as ``cli.app.configure_logging``.

__all__ = []
