"""Points, levels, streaks and achievements."""
