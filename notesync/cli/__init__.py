"""
CLI Module.

Interactive Rich shell driving the Session and Collection stores.
The Typer entry point lives in the root cli.py.

Usage:
    python cli.py shell
    python cli.py shell --demo
    python cli.py info
"""
