import inspect
from types import UnionType
from typing import Annotated, Any, Callable, Union, get_args, get_origin

from .errors import InvalidMessageTypeError
from .messages import all_subclasses

type Target = type | Callable[..., Any]

UNION_META = (UnionType, Union)


def gather_types(annotation: Any, *, with_subclasses: bool = True) -> set[type]:
    """
    Recursively gather all types from a type annotation, handling:
    - Union types (|)
    - Annotated types
    - Direct types, together with all their subclasses unless `with_subclasses` is False
    """
    types: set[type] = set()

    if annotation is inspect.Signature.empty:
        return types

    origin = get_origin(annotation)
    if not origin:
        if not inspect.isclass(annotation):
            raise InvalidMessageTypeError(annotation)
        types.add(annotation)
        if with_subclasses:
            types |= all_subclasses(annotation)
    else:
        if origin is Annotated:
            # For Annotated[Type, ...], we only care about the first argument
            param_type = get_args(annotation)[0]
            types.update(gather_types(param_type, with_subclasses=with_subclasses))
        elif origin in UNION_META:  # Union[X, Y] and X | Y
            for arg in get_args(annotation):
                types.update(gather_types(arg, with_subclasses=with_subclasses))
        else:
            # Generic type, e.g. List, Dict, etc.
            raise InvalidMessageTypeError(origin)
    return types
