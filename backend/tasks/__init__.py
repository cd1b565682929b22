"""
Grant Portal Celery Tasks

Task Modules:
    - grants: closing grants whose deadline has passed
    - notifications: notification outbox, verification email, notification cleanup

Queue Priorities:
    - critical: notification delivery and email
    - normal: periodic maintenance
"""
