"""
Core wiring.

Components:
- ports.py: Protocols the store and scheduler depend on
- state.py: AppState passed to the task API and console commands
"""
