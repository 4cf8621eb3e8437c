"""Chat relay to the gateway's OpenAI-compatible completions endpoint."""
import logging
from typing import Optional

import httpx

logger = logging.getLogger("mission_control.gateway")


class GatewayError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _upstream_error(payload) -> str:
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if payload.get("message"):
            return str(payload["message"])
    return "Gateway rejected the request. Check the token and the chat endpoint."


async def relay_chat(gateway_url: str, token: str, message: str, model: str,
                     transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    """Send one user message and return the assistant reply text.

    Raises GatewayError carrying the status to answer with.
    """
    url = f"{gateway_url}/v1/chat/completions"
    body = {"model": model, "messages": [{"role": "user", "content": message}], "stream": False}
    try:
        async with httpx.AsyncClient(timeout=120, transport=transport) as client:
            resp = await client.post(url, json=body, headers={"Authorization": f"Bearer {token}"})
    except httpx.TransportError as exc:
        logger.warning("gateway unreachable at %s: %s", gateway_url, exc)
        raise GatewayError(502, f"Gateway unreachable at {gateway_url}") from exc

    try:
        payload = resp.json()
    except ValueError:
        payload = {}

    if not resp.is_success:
        raise GatewayError(resp.status_code, _upstream_error(payload))

    try:
        reply = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        reply = ""
    return reply if isinstance(reply, str) else ""
