"""
Session Context and Identity

DESIGN DECISION: Who is signed in is explicit state, not a global.
The SessionContext carries the current owner plus a generation counter
that moves on every identity change. Async work captures a token before
awaiting and checks it afterwards; a result that belongs to an older
generation is dropped instead of being applied to someone else's ledger.

Authentication itself is out of scope. IdentityProvider only relays
"current owner or none" and notifies subscribers when it changes.
"""

from typing import Awaitable, Callable, NamedTuple, Optional


IdentityCallback = Callable[[Optional[str]], Awaitable[None]]


class SessionToken(NamedTuple):
    owner: Optional[str]
    generation: int


class SessionContext:
    """Current owner and the generation guarding async completions."""

    def __init__(self):
        self._owner: Optional[str] = None
        self._generation = 0

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_authenticated(self) -> bool:
        return self._owner is not None

    def switch(self, owner: Optional[str]) -> SessionToken:
        """Start a new generation for owner (None = signed out)."""
        self._owner = owner
        self._generation += 1
        return self.token()

    def token(self) -> SessionToken:
        return SessionToken(self._owner, self._generation)

    def is_current(self, token: SessionToken) -> bool:
        return token.generation == self._generation


class IdentityProvider:
    """
    Minimal identity relay.

    Real sign-in (OAuth, email/password) happens elsewhere; whatever
    performs it calls set_owner() with the resulting handle.
    """

    def __init__(self, owner: Optional[str] = None):
        self._owner = owner
        self._subscribers: list[IdentityCallback] = []

    def current(self) -> Optional[str]:
        return self._owner

    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        """
        Register callback for identity changes.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def set_owner(self, owner: Optional[str]) -> None:
        """Change the signed-in owner and notify subscribers in order."""
        if owner == self._owner:
            return
        self._owner = owner
        for callback in list(self._subscribers):
            await callback(owner)

    async def sign_out(self) -> None:
        await self.set_owner(None)
