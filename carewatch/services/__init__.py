"""Carewatch services.

- Distress Service: rule-based distress analysis of student feedback
- Alert Service: subscriptions, alert persistence and fan-out
- Insights Service: trends and patterns over the alert history

All services hash subject identifiers with hash_pii() before logging.
"""
