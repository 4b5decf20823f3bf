from typing import Any, Callable, Sequence


class DispatchWiseError(Exception): ...


class NotSupportedHandlerTypeError(DispatchWiseError):
    def __init__(self, handler: Any):
        super().__init__(f"{handler} of type {type(handler)} is not supported")


class HandlerRegisterFailError(DispatchWiseError): ...


class InvalidMessageTypeError(HandlerRegisterFailError):
    def __init__(self, msg_type: Any):
        super().__init__(f"{msg_type} is not a valid message type")


class MessageHandlerNotFoundError(HandlerRegisterFailError):
    def __init__(self, base_type: Any, handler: Any):
        super().__init__(f"can't find param of type `{base_type}` in {handler}")


class InvalidHandlerError(HandlerRegisterFailError):
    def __init__(self, basetype: type, msg_type: type, handler: Callable[..., Any]):
        msg = f"{handler} is receiving {msg_type}, which is not a valid subclass of {basetype}"
        super().__init__(msg)


class DuplicateHandlerError(HandlerRegisterFailError):
    def __init__(self, type_name: str):
        super().__init__(f"command {type_name} already has a handler")


class UnregisteredMessageError(DispatchWiseError):
    def __init__(self, msg: Any):
        super().__init__(f"Handler for message {msg} is not found")


class InvalidParameterError(DispatchWiseError):
    "raised when the envelope names a command type that is not registered"

    def __init__(self, message: str = "Command class not valid"):
        super().__init__(message)


class CommandTypeMismatchError(DispatchWiseError):
    def __init__(self, decoded: Any, expected: type):
        super().__init__(f"{type(decoded).__name__} is not a command of type {expected.__name__}")


class AggregateCommandHandlingError(DispatchWiseError):
    """
    a command handler raised while handling a command,
    the exception raised by the handler is kept as `cause`
    """

    def __init__(self, cause: BaseException):
        super().__init__(f"command handling failed: {cause}")
        self.cause = cause


class CommandRejectedByValidators(DispatchWiseError):
    def __init__(self, errors: Sequence[Exception]):
        super().__init__(f"command rejected by {len(errors)} validator(s)")
        self.errors = list(errors)


class UnknownTypeIdError(DispatchWiseError):
    def __init__(self, type_id: str):
        super().__init__(f"type {type_id} is not registered")


class InvalidAppStateError(DispatchWiseError):
    def __init__(self):
        super().__init__("Make sure `adapter` exist in app state")


class InvalidHandlerOutputError(DispatchWiseError):
    def __init__(self, output: Any):
        super().__init__(f"handler returned {output!r}, expected events")


class InvalidRegistryPathError(DispatchWiseError):
    def __init__(self, path: str):
        super().__init__(
            f"{path!r} is not a valid registry path, expected `module:attribute`"
        )
