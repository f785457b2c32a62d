"""
Entry point for running the devcmd LSP server as a module.

Usage:
    python -m devcmd.lsp
    python -m devcmd.lsp --tcp --port 2087
"""

from devcmd.lsp.server import main

if __name__ == "__main__":
    main()
