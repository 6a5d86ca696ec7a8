"""Account <-> Tag association package."""

from passbook.associations.manager import AssociationManager

__all__ = ["AssociationManager"]
