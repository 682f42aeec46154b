import json
import logging
from typing import Any, Sequence

import requests
from pydantic import ValidationError as SchemaValidationError

from app.core.config import PipelineConfig
from app.core.errors import ProviderCallError, ResultDecodeError, http_error_detail
from app.schemas.analyze import RubricReport
from app.services.fallback import invoke_with_fallback
from app.services.gemini_files import DEFAULT_API_BASE, RemoteStagingDescriptor
from app.services.rubric import RubricTemplate

logger = logging.getLogger(__name__)


def decode_report(data: Any) -> RubricReport:
    """
    Strict decoding of a generateContent response into a RubricReport.
    Never falls back to an empty report: any missing or malformed part raises.
    """
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ResultDecodeError("Evaluation response has no candidate text", raw=json.dumps(data)[:2000] if data is not None else None) from e
    if not isinstance(text, str) or not text.strip():
        raise ResultDecodeError("Evaluation response text is empty", raw=text if isinstance(text, str) else None)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ResultDecodeError(f"Evaluation response is not valid JSON: {e.msg}", raw=text[:2000]) from e
    if not isinstance(parsed, dict):
        raise ResultDecodeError("Evaluation response is not a JSON object", raw=text[:2000])
    try:
        return RubricReport.model_validate(parsed)
    except SchemaValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise ResultDecodeError(
            f"Evaluation response does not match the rubric schema ({loc}: {first.get('msg', 'invalid')})",
            raw=text[:2000],
        ) from e


class GeminiEvaluator:
    """generateContent against a staged file, with model fallback."""

    def __init__(
        self,
        api_key: str,
        config: PipelineConfig,
        rubric: RubricTemplate | None = None,
        base_url: str = DEFAULT_API_BASE,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._config = config
        self._rubric = rubric or RubricTemplate()
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()

    def build_request(self, descriptor: RemoteStagingDescriptor, lang: str | None = None) -> dict:
        return {
            "systemInstruction": {"parts": [{"text": self._rubric.system_instruction}]},
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": self._rubric.render(lang or self._config.report_lang)},
                        {"fileData": {"fileUri": descriptor.remote_uri, "mimeType": descriptor.mime_type}},
                    ],
                }
            ],
            "generationConfig": {
                "temperature": self._rubric.temperature,
                "responseMimeType": "application/json",
            },
        }

    def generate(self, descriptor: RemoteStagingDescriptor, model_id: str, lang: str | None = None) -> dict:
        """One generateContent call with *model_id*; returns the raw response JSON."""
        try:
            res = self._session.post(
                f"{self._base_url}/v1beta/{model_id}:generateContent",
                json=self.build_request(descriptor, lang),
                headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
                timeout=self._config.evaluation_timeout,
            )
            res.raise_for_status()
            return res.json()
        except requests.RequestException as e:
            status = e.response.status_code if getattr(e, "response", None) is not None else None
            raise ProviderCallError(f"{model_id}: {http_error_detail(e)}", status_code=status) from e
        except ValueError as e:
            raise ProviderCallError(f"{model_id}: response is not valid JSON") from e

    def evaluate(
        self,
        descriptor: RemoteStagingDescriptor,
        candidates: Sequence[str] | None = None,
        lang: str | None = None,
    ) -> RubricReport:
        candidates = self._config.model_candidates if candidates is None else candidates
        raw = invoke_with_fallback(lambda model_id: self.generate(descriptor, model_id, lang), candidates)
        report = decode_report(raw)
        logger.info("Evaluation of %s: score=%s findings=%d", descriptor.remote_id, report.score, len(report.findings))
        return report
