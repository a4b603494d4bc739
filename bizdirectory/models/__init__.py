"""Database models for the business directory."""

from .user import User
from .business import Business
from .boost_request import BoostRequest

__all__ = ['User', 'Business', 'BoostRequest']
