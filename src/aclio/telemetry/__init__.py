"""
Local telemetry.

- analytics.py: privacy-first event tracking kept in the key-value store
- crash_reporting.py: crash reports, error log and breadcrumbs
"""
