"""Audited domain mutations."""

from .domain_actions import DETACHED_REFS_FIELD, DETACHED_SUFFIX, DomainActions

__all__ = ['DomainActions', 'DETACHED_REFS_FIELD', 'DETACHED_SUFFIX']
