"""
Business logic for grants, proposals, reviews, reporting and notifications.
"""
