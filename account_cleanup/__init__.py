"""
Account Cleanup Service

Deletion reminders and grace-period account cleanup.
"""
