"""
pre-defined command, event and wire models
"""

from .model import Command as Command
from .model import CommandEnvelope as CommandEnvelope
from .model import ErrorResponse as ErrorResponse
from .model import Event as Event
from .model import EventMetaData as EventMetaData
from .model import EventWithMetaData as EventWithMetaData
from .model import all_subclasses as all_subclasses
from .model import type_id as type_id
from .model import with_metadata as with_metadata
