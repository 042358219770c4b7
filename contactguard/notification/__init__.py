"""Operator notification package.

Persists operator alerts, applies employer account suspensions, and
optionally emails alerts to the operator mailbox over SMTP.
"""
