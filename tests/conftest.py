"""
Pytest configuration and fixtures for Aegis tests.
"""

import sys
from pathlib import Path

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Shared test doubles live beside this file
sys.path.insert(0, str(Path(__file__).parent))
