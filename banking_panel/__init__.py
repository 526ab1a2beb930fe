"""
Banking Panel

Administrative service for staff-owned bank-account records, with
role-based dashboards and staff provisioning against a managed backend.
"""

__version__ = "1.0.0"
