"""Base protocol for delivery pipeline handlers."""

from typing import Protocol, TypeVar

from spekra_reporter.core.types import Result
from spekra_reporter.exceptions import SpekraError

# Contravariant input (handlers can accept supertypes), invariant output
T_In = TypeVar("T_In", contravariant=True)
T_Out = TypeVar("T_Out")
T_Error = TypeVar("T_Error", bound=SpekraError)


class BaseAsyncHandler(Protocol[T_In, T_Out, T_Error]):
    """Protocol for asynchronous delivery handlers.

    Each handler performs one delivery step on its input and reports the
    outcome as data instead of raising.
    """

    async def handle(self, command: T_In) -> Result[T_Out, T_Error]:
        """Process an input object.

        Args:
            command: The input for this delivery step.

        Returns:
            A Result object containing either the step output or an error.
        """
        ...
