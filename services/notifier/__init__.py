from __future__ import annotations
import asyncio
import logging
from typing import Optional

import aiohttp


class Notifier:
    """
    Transactional messages (order confirmation, customer credentials) go out
    through a webhook. If the URL is not set they are skipped quietly.
    Delivery never blocks or fails the operation that triggered it.
    """

    def __init__(self, url: Optional[str] = None, timeout: float = 10.0):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._pending: set[asyncio.Task] = set()

    async def send(self, template_id: str, recipient: str, variables: dict) -> None:
        if not self.url:
            logging.info(f"Notification {template_id} to {recipient} skipped, no NOTIFY_URL")
            return
        payload = {"template_id": template_id, "recipient": recipient, "variables": variables}
        async with aiohttp.ClientSession(timeout=self.timeout) as s:
            async with s.post(self.url, json=payload, headers={"Content-Type": "application/json"}) as r:
                r.raise_for_status()

    def dispatch(self, template_id: str, recipient: str, variables: dict) -> asyncio.Task:
        """Fire-and-forget ``send``; failures are logged only."""
        task = asyncio.create_task(self._send_logged(template_id, recipient, variables))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _send_logged(self, template_id: str, recipient: str, variables: dict) -> None:
        try:
            await self.send(template_id, recipient, variables)
        except Exception as e:
            logging.error(f"Failed to send {template_id} to {recipient}: {e}", exc_info=True)
