import asyncio
from typing import Optional


class Toggle:
    """
    An synchronisation primitive that can be awaited both until set or cleared.

    For one-directional toggles, `asyncio.Event` is sufficient.
    But these events cannot be awaited until cleared.

    The informers use it for their "synced" state: it is turned on when
    the initial listing is over, and can be turned off again on re-listing.

    The optional name is used only for hinting in reprs.
    """

    def __init__(
            self,
            __state: bool = False,
            *,
            name: Optional[str] = None,
    ) -> None:
        super().__init__()
        self._condition = asyncio.Condition()
        self._state: bool = bool(__state)
        self._name = name

    def __repr__(self) -> str:
        clsname = self.__class__.__name__
        toggled = 'on' if self._state else 'off'
        if self._name is None:
            return f'<{clsname}: {toggled}>'
        else:
            return f'<{clsname}: {self._name}: {toggled}>'

    def __bool__(self) -> bool:
        raise NotImplementedError  # to protect against accidental misuse

    def is_on(self) -> bool:
        return self._state

    def is_off(self) -> bool:
        return not self._state

    async def turn_to(self, __state: bool) -> None:
        """ Turn the toggle on/off, and wake up the tasks waiting for that. """
        async with self._condition:
            self._state = bool(__state)
            self._condition.notify_all()

    async def wait_for(self, __state: bool, *, timeout: Optional[float] = None) -> None:
        """
        Wait until the toggle is turned on/off as expected (if not yet).

        If the timeout is reached, `asyncio.TimeoutError` is raised.
        """
        await asyncio.wait_for(self._wait_for(bool(__state)), timeout=timeout)

    async def _wait_for(self, state: bool) -> None:
        async with self._condition:
            await self._condition.wait_for(lambda: self._state == state)

    @property
    def name(self) -> Optional[str]:
        return self._name
