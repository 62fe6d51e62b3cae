"""Audit logging package."""

from freelancer_tax.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
