"""
Campaign orchestration package.

The entrypoint remains `main.py` at the repo root. Retry, campaign sequencing and the
toggle-driven desk live here to keep entrypoints thin and testable.
"""
