"""Core module for neo-quota: exceptions and value objects."""

from .exceptions import *
from .value_objects import *
