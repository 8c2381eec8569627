"""
Application services composed from components.

- engine.py -> AccountingEngine facade used by the API and CLI
"""
