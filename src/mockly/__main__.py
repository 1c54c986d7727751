"""
Entry point for running the package as a module: python -m mockly
"""

from mockly.cli.main import app

if __name__ == "__main__":
    app()
