"""
Convenience entry point: python -m specialist_availability [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
