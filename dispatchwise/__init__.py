VERSION = "0.1.0"


from .adapter import AggregateHandlingFailure as AggregateHandlingFailure
from .adapter import CommandAdapter as CommandAdapter
from .adapter import DeserializationFailure as DeserializationFailure
from .adapter import Dispatched as Dispatched
from .adapter import DispatchResult as DispatchResult
from .adapter import OtherFailure as OtherFailure
from .adapter import UnknownCommandType as UnknownCommandType
from .adapter import ValidatorRejection as ValidatorRejection
from .codec import CommandDecoder as CommandDecoder
from .codec import EventEncoder as EventEncoder
from .codec import TaggedReader as TaggedReader
from .config import AdapterConfig as AdapterConfig
from .dispatcher import CommandDispatcher as CommandDispatcher
from .dispatcher import ICommandDispatcher as ICommandDispatcher
from .messages import Command as Command
from .messages import CommandEnvelope as CommandEnvelope
from .messages import ErrorResponse as ErrorResponse
from .messages import Event as Event
from .messages import EventMetaData as EventMetaData
from .messages import EventWithMetaData as EventWithMetaData
from .registry import SubscriberRegistry as SubscriberRegistry
from .strategies import concurrent_validate as concurrent_validate
from .validator import BaseValidator as BaseValidator
from .validator import ValidationFailure as ValidationFailure
