import inspect
from types import MappingProxyType
from typing import Any, Callable, Iterator

from ._itypes import FuncMeta, HandlerMapping, IValidator, MethodMeta, ValidatorMeta
from ._visitor import Target, gather_types
from .errors import (
    DuplicateHandlerError,
    InvalidHandlerError,
    InvalidMessageTypeError,
    MessageHandlerNotFoundError,
    NotSupportedHandlerTypeError,
)
from .messages import Command, type_id
from .validator import BaseValidator


def get_funcmetas(msg_base: type, func: Callable[..., Any]) -> list[FuncMeta[Any]]:
    params = inspect.signature(func, eval_str=True).parameters.values()
    if not params:
        raise MessageHandlerNotFoundError(msg_base, func)

    msg, *_ = params
    is_async: bool = inspect.iscoroutinefunction(func)
    derived_msgtypes = gather_types(msg.annotation)
    if not derived_msgtypes:
        raise MessageHandlerNotFoundError(msg_base, func)

    for msg_type in derived_msgtypes:
        if not issubclass(msg_type, msg_base):
            raise InvalidHandlerError(msg_base, msg_type, func)

    return [
        FuncMeta(
            message_type=t,
            type_name=type_id(t),
            handler=func,
            is_async=is_async,
        )
        for t in derived_msgtypes
    ]


def get_methodmetas(msg_base: type, cls: type) -> list[MethodMeta[Any]]:
    cls_members = inspect.getmembers(cls, predicate=inspect.isfunction)
    method_metas: list[MethodMeta[Any]] = []
    for name, func in cls_members:
        if name.startswith("_"):
            continue
        params = inspect.signature(func, eval_str=True).parameters.values()
        if len(params) == 1:
            continue

        _, msg, *_ = params  # ignore `self`
        if msg.annotation is inspect.Signature.empty:
            continue
        try:
            derived_msgtypes = gather_types(msg.annotation)
        except InvalidMessageTypeError:
            continue

        if not all(issubclass(msg_type, msg_base) for msg_type in derived_msgtypes):
            continue

        is_async: bool = inspect.iscoroutinefunction(func)
        method_metas.extend(
            MethodMeta(
                message_type=t,
                type_name=type_id(t),
                handler=func,
                is_async=is_async,
                owner_type=cls,
            )
            for t in derived_msgtypes
        )

    if not method_metas:
        raise MessageHandlerNotFoundError(msg_base, cls)

    return method_metas


def get_validatetargets(validator: Any) -> set[type]:
    if inspect.isfunction(validator):
        func = validator
    elif callable(validator):
        func = validator.__call__
    else:
        raise NotSupportedHandlerTypeError(validator)

    params = list(inspect.signature(func, eval_str=True).parameters.values())
    if not params:
        raise MessageHandlerNotFoundError(Command, validator)
    return gather_types(params[0].annotation, with_subclasses=False)


class SubscriberRegistry:
    """
    Maps the type name of a command, as sent by clients, to the handler
    that receives it, and keeps the validators that run before it.

    ```py
    registry = SubscriberRegistry()

    @registry
    async def create_user(command: CreateUser) -> UserCreated:
        return UserCreated(aggregate_id=command.user_id, name=command.name)
    ```

    Handlers annotated with a base command also handle its subclasses,
    a handler registered for the exact type takes precedence.
    """

    def __init__(self, command_base: type[Command] = Command):
        self._command_base = command_base
        self._handlers: dict[str, FuncMeta[Any]] = {}
        self._explicit: set[str] = set()
        self._validators: list[ValidatorMeta] = []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(command_base={self._command_base}, commands={len(self._handlers)})"

    def __call__(self, handler: Target) -> Any:
        self._register(handler)
        return handler

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    @property
    def command_base(self) -> type[Command]:
        return self._command_base

    @property
    def command_mapping(self) -> HandlerMapping:
        return MappingProxyType(self._handlers)

    def lookup(self, type_name: str) -> FuncMeta[Any] | None:
        return self._handlers.get(type_name)

    def validators_for(self, msg_type: type) -> list[IValidator]:
        "validators of `msg_type` and of its bases, in registration order"
        validators: list[IValidator] = []
        for meta in self._validators:
            if not issubclass(msg_type, meta.validate_target):
                continue
            if any(v is meta.validator for v in validators):
                continue
            validators.append(meta.validator)
        return validators

    def _add_meta(self, meta: FuncMeta[Any], explicit: bool) -> None:
        name = meta.type_name
        if name in self._explicit:
            if explicit and self._handlers[name].handler is not meta.handler:
                raise DuplicateHandlerError(name)
            return

        if explicit:
            self._explicit.add(name)
        self._handlers[name] = meta

    @staticmethod
    def _is_explicit(meta: FuncMeta[Any]) -> bool:
        "whether the handler names the message type itself rather than one of its bases"
        params = list(inspect.signature(meta.handler, eval_str=True).parameters.values())
        msg = params[1] if isinstance(meta, MethodMeta) else params[0]
        return meta.message_type in gather_types(msg.annotation, with_subclasses=False)

    def _register(self, handler: Target) -> None:
        if inspect.isfunction(handler):
            metas: list[FuncMeta[Any]] = get_funcmetas(self._command_base, handler)
        elif inspect.isclass(handler):
            metas = list(get_methodmetas(self._command_base, handler))
        else:
            raise NotSupportedHandlerTypeError(handler)

        for meta in sorted(metas, key=lambda m: not self._is_explicit(m)):
            self._add_meta(meta, explicit=self._is_explicit(meta))

    def register(
        self,
        *handlers: Target,
        validators: list[IValidator] | None = None,
    ) -> None:
        for handler in handlers:
            if inspect.isclass(handler) and issubclass(handler, BaseValidator):
                raise NotSupportedHandlerTypeError(handler)
            self._register(handler)

        if validators:
            self.add_validators(*validators)

    def validator(self, func: IValidator) -> IValidator:
        self.add_validators(func)
        return func

    def add_validators(self, *validators: IValidator) -> None:
        for validator in validators:
            for target in get_validatetargets(validator):
                meta = ValidatorMeta(validate_target=target, validator=validator)
                self._validators.append(meta)

    def include(self, *registries: "SubscriberRegistry") -> None:
        for registry in registries:
            for meta in registry.command_mapping.values():
                self._add_meta(meta, explicit=meta.type_name in registry._explicit)
            self._validators.extend(registry._validators)
