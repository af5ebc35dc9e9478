# services/openai_service.py
from __future__ import annotations

import json
import re
import time
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from openai import OpenAI  # pip install openai>=1
from pydantic import BaseModel, ValidationError

from app.config import Settings, require_openai, settings as default_settings
from app.core.logging import get_logger

logger = get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

_JSON_HINT = (
    "必ず有効なJSONオブジェクトを1つだけ返してください。"
    "説明文、マークダウン、コードブロックは含めないでください。"
)


def _extract_first_json(text: str) -> str:
    """
    Tolerant parser: take the first {...} block and drop trailing commas.
    """
    m = re.search(r"\{.*\}", text, flags=re.DOTALL)
    candidate = m.group(0) if m else text.strip()
    candidate = re.sub(r",\s*([}\]])", r"\1", candidate)
    return candidate.strip()


def _to_jsonable(obj: Any) -> Any:
    """
    Turn OpenAI SDK objects (e.g. usage) into JSON-serialisable values.
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _to_jsonable(v) for k, v in obj.items()}
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        return _to_jsonable(model_dump())
    return str(obj)


class OpenAIService:
    """
    JSON-only chat completion wrapper with pydantic validation.
    Failures are logged and raised as RuntimeError; callers decide whether
    to skip the item.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        max_retries: int = 0,
        timeout_s: int = 60,
        client: Optional[Any] = None,
    ):
        cfg = settings or default_settings
        self.model = model or cfg.OPENAI_MODEL
        self.max_retries = max(0, max_retries)
        self.timeout_s = timeout_s
        if client is None:
            client = OpenAI(api_key=require_openai(cfg))
        self.client = client

    def _build_messages(self, system_prompt: str, user_prompt: str) -> list[dict]:
        return [
            {"role": "system", "content": f"{system_prompt}\n\n{_JSON_HINT}"},
            {"role": "user", "content": user_prompt},
        ]

    def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: Type[ModelT],
        action_type: str = "generic",
        temperature: float = 0.3,
    ) -> Tuple[ModelT, Dict[str, Any]]:
        """
        Returns: (parsed_model_instance, meta_dict)
        """
        messages = self._build_messages(system_prompt, user_prompt)
        last_err: Optional[Exception] = None
        t0 = time.perf_counter()

        for attempt in range(self.max_retries + 1):
            try:
                completion = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=temperature,
                    response_format={"type": "json_object"},
                    timeout=self.timeout_s,
                )
                raw_text = completion.choices[0].message.content or ""
                usage_plain = _to_jsonable(getattr(completion, "usage", None))

                data = json.loads(_extract_first_json(raw_text))
                parsed = response_model.model_validate(data)

                duration_ms = int((time.perf_counter() - t0) * 1000)
                logger.info(
                    "openai_call_success",
                    action_type=action_type,
                    model=self.model,
                    duration_ms=duration_ms,
                    usage=usage_plain,
                )
                return parsed, {
                    "ok": True,
                    "model": self.model,
                    "raw_text": raw_text,
                    "usage": usage_plain,
                    "duration_ms": duration_ms,
                }

            except (ValidationError, json.JSONDecodeError) as e:
                last_err = e
                logger.warning(
                    "openai_invalid_json",
                    action_type=action_type,
                    attempt=attempt + 1,
                    error=str(e),
                )
                messages[-1]["content"] = f"{user_prompt}\n\n注意: {_JSON_HINT}"
                continue

            except Exception as e:
                last_err = e
                logger.warning(
                    "openai_call_failed",
                    action_type=action_type,
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

        duration_ms = int((time.perf_counter() - t0) * 1000)
        logger.error(
            "openai_call_exhausted",
            action_type=action_type,
            model=self.model,
            duration_ms=duration_ms,
            error=str(last_err),
        )
        raise RuntimeError(f"OpenAIService failed after {self.max_retries + 1} attempt(s): {last_err}")
