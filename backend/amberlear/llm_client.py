from __future__ import annotations
import logging
import httpx
from typing import Any, Callable, Dict, List, Optional, Tuple
from .settings import settings

logger = logging.getLogger(__name__)


class LLMClient:
	"""Anthropic Messages API client with an optional OpenRouter fallback."""

	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.anthropic_api_key
		if not self.api_key:
			raise ValueError("ANTHROPIC_API_KEY is not configured")
		self.model = model or settings.anthropic_model
		self.base_url = base_url or settings.anthropic_base_url
		self._headers = {
			"x-api-key": self.api_key,
			"anthropic-version": settings.anthropic_version,
			"content-type": "application/json",
		}
		self._client = httpx.AsyncClient(timeout=settings.llm_timeout_seconds, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		if settings.openrouter_api_key:
			self._fallback_client = httpx.AsyncClient(timeout=settings.llm_timeout_seconds, transport=transport)

	async def generate(self, prompt: str, *, max_tokens: Optional[int] = None, allow_fallback: bool = True) -> str:
		payload: Dict[str, Any] = {
			"model": self.model,
			"max_tokens": max_tokens or settings.llm_max_tokens,
			"messages": [{"role": "user", "content": prompt}],
		}
		text, last_error = await _post_for_text(
			self._client, self.base_url, self._headers, payload, lambda data: _join_text_blocks(data["content"])
		)
		if last_error is None:
			return text
		if not allow_fallback or self._fallback_client is None:
			raise last_error
		logger.warning("primary LLM call failed (%s); trying OpenRouter", last_error)
		return await self._fallback_generate(prompt, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, prompt: str, primary_error: Exception) -> str:
		headers = {
			"Authorization": f"Bearer {settings.openrouter_api_key}",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		payload: Dict[str, Any] = {
			"model": settings.openrouter_model,
			"messages": [{"role": "user", "content": prompt}],
		}
		text, fallback_error = await _post_for_text(
			self._fallback_client,
			settings.openrouter_base_url,
			{k: v for k, v in headers.items() if v},
			payload,
			lambda data: data["choices"][0]["message"]["content"],
		)
		if fallback_error is None:
			return text
		raise RuntimeError(
			f"LLM primary call failed ({primary_error}); fallback via OpenRouter also failed ({fallback_error})"
		) from fallback_error


async def _post_for_text(
	client: httpx.AsyncClient,
	url: str,
	headers: Dict[str, str],
	payload: Dict[str, Any],
	extract: Callable[[Any], str],
) -> Tuple[str, Optional[Exception]]:
	"""POST ``payload`` and pull the reply text out; errors are returned, not raised."""
	try:
		r = await client.post(url, headers=headers, json=payload)
		r.raise_for_status()
	except httpx.HTTPError as err:
		return "", err
	try:
		return extract(r.json()), None
	except (KeyError, IndexError, TypeError, ValueError):
		return "", RuntimeError(f"Unexpected LLM response: {r.text}")


def _join_text_blocks(blocks: List[Dict[str, Any]]) -> str:
	return "\n".join(b["text"] for b in blocks if b.get("type") == "text")
