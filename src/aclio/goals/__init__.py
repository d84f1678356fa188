"""
Goals.

- models.py: Goal, Step, profile and location data (camelCase JSON on disk)
- service.py: GoalService, the goal operations shared by all front-ends
"""
