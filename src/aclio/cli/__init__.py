"""
Console entry point.

- bootstrap.py: composition root (settings -> store -> services -> AppState)
- commands.py: slash commands
- main.py: `aclio` script
"""
