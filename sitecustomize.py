"""Interpreter customisation for development runs of the orchestrator."""

import os
import sys

# web3 registers a pytest plugin through an entry point whose optional
# dependencies are not declared here; keep plugin discovery off.
os.environ.setdefault("PYTEST_DISABLE_PLUGIN_AUTOLOAD", "1")

ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
