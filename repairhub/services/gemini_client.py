import base64
import binascii
import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional

import google.generativeai as genai
import requests

from repairhub.utils.config import DIAG_CFG, get_settings
from repairhub.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)


class GeminiClient:
    """
    Gemini 텍스트/이미지 분석 호출 래퍼.
    SDK/전송 오류는 모두 ExternalServiceError로 변환한다.
    """
    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gemini-1.5-flash",
        timeout: float = 30.0,
    ) -> None:
        self.timeout = timeout
        self.model = None
        if api_key:
            try:
                genai.configure(api_key=api_key)
                self.model = genai.GenerativeModel(model_name)
            except Exception as e:
                logger.error(f"Gemini 모델 초기화 실패: {e}")
                self.model = None

    def _generate(self, contents: List[Any]) -> str:
        if not self.model:
            raise ExternalServiceError("AI service is not configured.")
        try:
            response = self.model.generate_content(
                contents,
                generation_config={
                    "temperature": DIAG_CFG.temperature,
                    "max_output_tokens": DIAG_CFG.max_output_tokens,
                },
                request_options={"timeout": self.timeout},
            )
            text = getattr(response, "text", "") or ""
        except Exception as e:
            logger.error(f"Gemini 호출 실패: {e}")
            raise ExternalServiceError("AI service is unavailable.") from e
        if not text.strip():
            logger.error("Gemini 응답이 비어 있음")
            raise ExternalServiceError("AI service returned an empty response.")
        return text

    def generate_text(self, prompt: str) -> str:
        return self._generate([prompt])

    def generate_with_images(self, prompt: str, image_urls: List[str]) -> str:
        parts: List[Any] = [prompt]
        parts.extend(self.load_image(url) for url in image_urls)
        return self._generate(parts)

    def load_image(self, url: str) -> Dict[str, Any]:
        """
        data URL(base64) 또는 http(s) URL → Gemini inline blob
        """
        m = _DATA_URL_RE.match(url)
        if m:
            try:
                return {"mime_type": m.group("mime"), "data": base64.b64decode(m.group("data"))}
            except (binascii.Error, ValueError) as e:
                raise ExternalServiceError("Image could not be decoded.") from e
        try:
            resp = requests.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"이미지 다운로드 실패 ({url[:80]}): {e}")
            raise ExternalServiceError("Image could not be downloaded.") from e
        mime = resp.headers.get("Content-Type", "image/jpeg").split(";")[0]
        return {"mime_type": mime, "data": resp.content}


@lru_cache
def get_gemini_client() -> GeminiClient:
    settings = get_settings()
    return GeminiClient(settings.gemini_api_key, settings.gemini_model, settings.ai_timeout_seconds)
