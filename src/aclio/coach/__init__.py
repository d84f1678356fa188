"""
AI coach.

- prompts.py: system/user prompt builders
- service.py: CoachService (plans, questions, step help, chat) and JSON parsing
"""
