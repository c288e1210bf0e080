import logging
from typing import List, Optional

from repairhub.repositories.request_repository import RequestStore
from repairhub.repositories.verification_repository import VerificationRepository
from repairhub.schemas.domain import VerificationAttempt, VerificationResult
from repairhub.services.gemini_client import GeminiClient
from repairhub.utils.errors import ExternalServiceError
from repairhub.utils.text import extract_json_object

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Verification service unavailable. Please try again with clearer images."


def build_prompt(before_count: int, note: str) -> str:
    return f"""
# Role
You verify that a repair was actually completed.

# Input
- The first {before_count} image(s) show the item BEFORE the repair.
- The last image shows the item AFTER the repair.
- Repairer's note: {note or "(none)"}

# Output rules
1. Compare the before and after images and decide whether the reported problem is fixed.
2. Reply with a JSON object only: {{"verified": true|false, "message": "<one or two sentences for the customer>"}}
3. If the after image is unclear or unrelated to the item, answer verified=false and ask for a clearer photo.
"""


class CompletionVerifier:
    def __init__(self, store: RequestStore, attempts: VerificationRepository, ai: GeminiClient) -> None:
        self.store = store
        self.attempts = attempts
        self.ai = ai

    def _ask_ai(self, before: List[str], after_image_url: str, note: str) -> VerificationResult:
        try:
            text = self.ai.generate_with_images(build_prompt(len(before), note), [*before, after_image_url])
            verdict = extract_json_object(text)
        except ExternalServiceError as e:
            logger.error(f"완료 검증 AI 호출 실패: {e.message}")
            return VerificationResult(verified=False, message=UNAVAILABLE_MESSAGE)
        except ValueError as e:
            logger.error(f"완료 검증 응답 파싱 실패: {e}")
            return VerificationResult(verified=False, message=UNAVAILABLE_MESSAGE)

        verified = verdict.get("verified")
        if not isinstance(verified, bool):
            logger.error(f"완료 검증 응답에 verified 값 없음: {verdict}")
            return VerificationResult(verified=False, message=UNAVAILABLE_MESSAGE)
        message = str(verdict.get("message") or "").strip()
        if not message:
            message = (
                "Repair verification complete. The item appears to be fixed correctly."
                if verified
                else "The repair could not be verified from the submitted photo."
            )
        return VerificationResult(verified=verified, message=message)

    def verify(
        self,
        request_id: str,
        after_image_url: str,
        note: str = "",
        before_image_urls: Optional[List[str]] = None,
    ) -> VerificationResult:
        """
        수리 전/후 사진 비교 결과를 반환하고 모든 시도를 감사 로그에 남긴다.
        - 요청이 없으면 NotFoundError (감사 로그 기록 없음)
        - AI 장애는 예외 대신 verified=False + 안내 메시지
        """
        request = self.store.get(request_id)
        before = list(before_image_urls) if before_image_urls else list(request.image_urls)

        result = self._ask_ai(before, after_image_url, note)
        self.attempts.append(request_id, after_image_url, before, note, result)
        logger.info(f"완료 검증 (request={request_id}, verified={result.verified})")
        return result

    def list_attempts(self, request_id: str) -> List[VerificationAttempt]:
        self.store.get(request_id)
        return self.attempts.list_for_request(request_id)
