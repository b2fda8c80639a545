"""taskcycle: recurring-task generation for project task boards."""

__version__ = "0.1.0"
