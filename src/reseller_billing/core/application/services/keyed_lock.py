import asyncio
import weakref
from collections.abc import AsyncIterator, Hashable
from contextlib import AsyncExitStack, asynccontextmanager


class KeyedLock:
    """
    Registro de `asyncio.Lock` por entidade (cliente, indicador, resgate).

    Serializa o read-modify-write de campos quentes (expiração, saldo)
    dentro do processo. Várias chaves são adquiridas em ordem estável
    para não haver deadlock.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[Hashable, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *keys: Hashable) -> AsyncIterator[None]:
        ordered = sorted({k for k in keys if k is not None}, key=str)
        locks = [self._lock_for(k) for k in ordered]
        async with AsyncExitStack() as stack:
            for lock in locks:
                await stack.enter_async_context(lock)
            yield
