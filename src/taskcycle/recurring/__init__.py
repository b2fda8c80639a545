"""
Recurring task subsystem.

Components:
- models.py: data structures (RecurringTask, Task, GeneratedTaskRecord) and errors
- rules.py: pure calendar rules (eligibility, next generation date)
- generator.py: one generation pass over active templates
- scheduler.py: polling loop that runs the generator periodically
- store.py: SQLite-backed storage
- rest_store.py: REST (PostgREST-style) storage over httpx
- api.py: template management helpers used by the CLI
"""
