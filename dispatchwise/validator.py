from abc import ABC, abstractmethod
from typing import Any


class ValidationFailure(Exception):
    """
    Base for the reasons a validator gives when it rejects a command.

    Subclass it per reason so that clients can tell rejections apart,
    the fully-qualified class name is reported as the error `type`.

    ```py
    class NameRequired(ValidationFailure): ...

    @registry.validator
    def name_required(command: CreateUser) -> None:
        if not command.name:
            raise NameRequired("name required")
    ```
    """


class BaseValidator(ABC):
    """
    An abstract class for validators that need state or dependencies.

    The command type it validates is read from the annotation of the
    first parameter of `__call__`.

    Example
    ---

    ```py
    class UniqueName(BaseValidator):
        def __init__(self, taken: set[str]):
            self._taken = taken

        async def __call__(self, command: CreateUser) -> None:
            if command.name in self._taken:
                raise NameTaken(f"{command.name} is taken")

    registry.add_validators(UniqueName({"admin"}))
    ```
    """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    @abstractmethod
    async def __call__(self, command: Any, /) -> None:
        raise NotImplementedError
