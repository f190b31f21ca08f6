"""
Utility functions and helpers for Aegis.

- **logger.py**: Centralized logging with colored console output through
  prompt_toolkit and rotating per-session log files.
- **errors.py**: Exception hierarchy shared by every layer.
- **duration.py**: Parsing and formatting of durations such as ``10m`` or ``7d``.
- **discord_utils.py**: Message filters and the py-cord implementation of the
  platform actions.
"""
