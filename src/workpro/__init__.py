"""
WorkPro - offline resilience core for the maintenance-management client.

- workpro.core: fingerprint cache, query/mutation coordinator, notifications
- workpro.cli: command-line inspection of the durable cache
"""

__version__ = "0.1.0"
