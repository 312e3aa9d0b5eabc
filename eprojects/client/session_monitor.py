"""
Monitor de sessão do lado do cliente.

Enquanto há usuário logado, consulta GET /api/user a cada `interval`
segundos. Um 401 com `sessionExpired` significa que a conta entrou em
outro dispositivo: o monitor avisa via `on_expired(message)` e para.
Erros de rede são registrados e a consulta é refeita no próximo ciclo.
"""

import asyncio
import inspect
import logging
import os

import httpx

logger = logging.getLogger("eprojects.session_monitor")

DEFAULT_INTERVAL = float(os.getenv("SESSION_POLL_INTERVAL", "5"))
DEFAULT_EXPIRED_MESSAGE = "Sua sessão expirou. Por favor, faça login novamente."


class SessionMonitor:
    def __init__(self, client: httpx.AsyncClient, on_expired, interval: float = DEFAULT_INTERVAL, path: str = "/api/user"):
        self.client = client
        self.on_expired = on_expired
        self.interval = interval
        self.path = path
        self.user = None
        self.expired = False
        self._stopped = asyncio.Event()

    def stop(self) -> None:
        self._stopped.set()

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    async def _notify(self, message: str) -> None:
        result = self.on_expired(message)
        if inspect.isawaitable(result):
            await result

    async def check(self):
        """Uma consulta. Devolve os dados do usuário ou None quando não há sessão."""
        response = await self.client.get(self.path)

        if response.status_code == 401:
            try:
                body = response.json()
            except ValueError:
                body = {}

            self.user = None
            if isinstance(body, dict) and body.get("sessionExpired"):
                self.expired = True
                self.stop()
                logger.info("Sessão substituída por outro login")
                await self._notify(body.get("message") or DEFAULT_EXPIRED_MESSAGE)
            return None

        response.raise_for_status()
        self.user = response.json()
        return self.user

    async def run(self) -> None:
        while self.running:
            try:
                user = await self.check()
            except (httpx.HTTPError, ValueError) as e:
                # Falha de rede ou resposta que não é JSON: tenta de novo no próximo ciclo
                logger.warning("Erro ao verificar sessão: %s", e)
            else:
                # Sem usuário logado não há o que monitorar
                if user is None:
                    self.stop()
                    break

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
