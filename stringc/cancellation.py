"""
Cooperative cancellation for long-running operations.
"""

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

from __future__ import annotations
from threading import Event
from typing import Self, final


class Cancelled(Exception):
    """Raised when an operation observes that it has been cancelled."""


@final
class CancellationToken:
    """
    A thread-safe cancellation flag. Operations taking ``cancel=`` poll the token
    between units of work and raise :class:`Cancelled` once it is set.
    """

    __event: Event

    __slots__ = ("__weakref__", "__event")

    def __new__(cls) -> Self:
        """
        Creates a token which has not been cancelled.

        :meta public:
        """
        self = super().__new__(cls)
        self.__event = Event()
        return self

    def cancel(self) -> None:
        """Requests cancellation. Idempotent."""
        self.__event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self.__event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raises :class:`Cancelled` if cancellation has been requested."""
        if self.__event.is_set():
            raise Cancelled("Operation was cancelled.")

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<CancellationToken {id(self):#x}: {state}>"


def poll(cancel: CancellationToken | None) -> None:
    """Raises :class:`Cancelled` if the given token (if any) has been cancelled."""
    if cancel is not None:
        cancel.raise_if_cancelled()
