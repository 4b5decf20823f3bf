"""
- validate_strategy: `Callable[[Any, Sequence[IValidator]], Awaitable[list[Exception]]]`

    runs the validators of a command and returns the reasons they gave,
    in the order the validators were registered.

    ```py
    async def validate(command: Any, validators: Sequence[IValidator]) -> list[Exception]:
        failures = []
        for validator in validators:
            try:
                await validator(command)
            except Exception as exc:
                failures.append(exc)
        return failures
    ```
"""

import inspect
from asyncio import TaskGroup
from typing import Any, Sequence

from ._itypes import IValidator


async def _run(validator: IValidator, command: Any) -> Exception | None:
    try:
        result = validator(command)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        return exc
    return None


async def default_validate(
    command: Any, validators: Sequence[IValidator]
) -> list[Exception]:
    failures: list[Exception] = []
    for validator in validators:
        if (exc := await _run(validator, command)) is not None:
            failures.append(exc)
    return failures


async def concurrent_validate(
    command: Any, validators: Sequence[IValidator]
) -> list[Exception]:
    async with TaskGroup() as tg:
        tasks = [tg.create_task(_run(validator, command)) for validator in validators]
    return [exc for task in tasks if (exc := task.result()) is not None]
