"""Language-model client.

HTTP providers speak the OpenAI chat-completions protocol over
urllib.request. The ``claude-cli`` provider shells out to ``claude -p``.
"""

from __future__ import annotations

import contextlib
import json
import logging
import subprocess
import urllib.request
from urllib.error import HTTPError, URLError

from daylog.config import AIProvider, AISectionConfig
from daylog.errors import AccessPreconditionError, GenerationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URLS: dict[AIProvider, str] = {
    AIProvider.OPENAI: "https://api.openai.com/v1",
    AIProvider.NATIVE_OLLAMA: "http://localhost:11434/v1",
    AIProvider.SCREENPIPE_CLOUD: "https://ai-proxy.i-f9f.workers.dev/v1",
}


class LLMClient:
    """Sends a single prompt to the configured provider and returns the text."""

    def complete(self, prompt: str, params: AISectionConfig) -> str:
        """Return the model's reply to ``prompt``.

        Raises:
            GenerationError: If the provider call fails.
            AccessPreconditionError: If a required user token is missing.
        """
        if params.provider is AIProvider.CLAUDE_CLI:
            return self._complete_cli(prompt, params)
        return self._complete_http(prompt, params)

    def _complete_cli(self, prompt: str, params: AISectionConfig) -> str:
        cmd: list[str] = ["claude", "-p"]
        if params.model:
            cmd.extend(["--model", params.model])
        cmd.append(prompt)

        logger.debug("Calling Claude CLI (%d prompt chars)", len(prompt))

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=params.timeout,
            )
        except FileNotFoundError as e:
            raise GenerationError("Claude CLI not found -- is 'claude' on the PATH?") from e
        except subprocess.TimeoutExpired as e:
            raise GenerationError(f"Claude CLI timed out after {params.timeout}s") from e
        except OSError as e:
            raise GenerationError(f"Failed to run Claude CLI: {e}") from e

        if result.returncode != 0:
            err_text = result.stderr.strip() if result.stderr else ""
            raise GenerationError(f"Claude CLI exited {result.returncode}: {err_text}")

        return result.stdout.strip()

    def _complete_http(self, prompt: str, params: AISectionConfig) -> str:
        base_url = (params.url or DEFAULT_BASE_URLS.get(params.provider, "")).rstrip("/")
        if not base_url:
            raise GenerationError(f"No URL configured for AI provider '{params.provider.value}'")

        if params.provider.requires_user_token:
            if not params.user_token:
                raise AccessPreconditionError(
                    f"AI provider '{params.provider.value}' requires a user token"
                )
            token = params.user_token
        else:
            token = params.api_key

        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        body = {
            "model": params.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        req = urllib.request.Request(
            f"{base_url}/chat/completions",
            data=json.dumps(body).encode("utf-8"),
            headers=headers,
            method="POST",
        )

        logger.debug("Calling %s (model=%s)", params.provider.value, params.model)

        try:
            with urllib.request.urlopen(req, timeout=params.timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            resp_body = ""
            with contextlib.suppress(Exception):
                resp_body = exc.read().decode("utf-8")
            raise GenerationError(
                f"AI provider error: {exc.code} {exc.reason} {resp_body}".rstrip()
            ) from exc
        except (URLError, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            raise GenerationError(f"AI provider connection error: {reason}") from exc
        except json.JSONDecodeError as exc:
            raise GenerationError(f"AI provider returned invalid JSON: {exc}") from exc

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationError("AI provider response had no message content") from exc
        return (content or "").strip()
