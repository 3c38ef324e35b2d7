# ============================================================
# HTTP Endpoint Probe with Response Validation
# HTTP 엔드포인트 프로브 (응답 검증 기능 포함)
# ============================================================

import requests
import urllib3
from typing import Dict, Any, Optional

from .base import BaseProbe
from healthprobe.errors import ConfigError, ProbeFailure
from healthprobe.models import ProbeOutcome

# SSL 인증서 검증 경고 비활성화 (verify_ssl=false 사용 시)
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class HttpProbe(BaseProbe):
    """
    HTTP/HTTPS 엔드포인트 상태를 체크하는 프로브

    주요 기능:
    - 커스텀 HTTP 메소드 지원
    - 상태 코드 검증
    - SSL 인증서 검증 옵션
    - 응답 본문 검증 (contains, equals, JSON 필드)
    """

    probe_type = 'http'

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        url = self._require('url')
        if not url.startswith(('http://', 'https://')):
            url = f"{config.get('scheme', 'http').lower()}://{url}"
        self.url = url
        self.method = config.get('method', 'GET').upper()
        self.expected_status = int(config.get('expected_status', 200))
        self.verify_ssl = bool(config.get('verify_ssl', True))
        self.request_timeout = float(config.get('request_timeout', 5))
        self.expect_body: Optional[Dict[str, Any]] = config.get('expect_body')
        if self.expect_body is not None and not any(
            key in self.expect_body for key in ('contains', 'equals', 'json_field')
        ):
            raise ConfigError("expect_body requires one of 'contains', 'equals', 'json_field'")

    def check(self) -> ProbeOutcome:
        """
        엔드포인트를 호출하고 상태 코드와 응답 본문을 검증합니다.

        요청 자체가 실패하면 ProbeFailure를 발생시키며,
        CheckRunner가 이를 Unhealthy 결과로 변환합니다.
        """
        try:
            response = requests.request(
                method=self.method,
                url=self.url,
                timeout=self.request_timeout,
                verify=self.verify_ssl,
                allow_redirects=True
            )
        except requests.exceptions.SSLError as e:
            raise ProbeFailure(f"SSL certificate error: {e}") from e
        except requests.exceptions.Timeout as e:
            raise ProbeFailure(f"Request timeout after {self.request_timeout:g}s") from e
        except requests.exceptions.ConnectionError as e:
            raise ProbeFailure(f"Connection error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ProbeFailure(f"Request error: {e}") from e

        if response.status_code != self.expected_status:
            return self._outcome(
                False,
                f"{self.method} {self.url}: expected {self.expected_status}, "
                f"got {response.status_code}"
            )

        if self.expect_body:
            error = self._validate_body(response)
            if error:
                return self._outcome(False, f"{self.method} {self.url}: {error}")

        return self._outcome(True, f"{self.method} {self.url}: {response.status_code}")

    def _validate_body(self, response: requests.Response) -> Optional[str]:
        """
        응답 본문을 검증합니다.

        Returns:
            Optional[str]: 검증 실패 메시지 (성공 시 None)
        """
        expected = self.expect_body

        if 'equals' in expected:
            if response.text != str(expected['equals']):
                return f"body mismatch: expected {str(expected['equals'])!r}"

        if 'contains' in expected:
            if str(expected['contains']) not in response.text:
                return f"body does not contain {str(expected['contains'])!r}"

        if 'json_field' in expected:
            try:
                data = response.json()
            except ValueError as e:
                return f"invalid JSON response: {e}"
            field = expected['json_field']
            actual = self._get_nested_value(data, field)
            if actual != expected.get('value'):
                return f"field {field!r}: expected {expected.get('value')!r}, got {actual!r}"

        return None

    def _get_nested_value(self, data: Any, field_path: str) -> Any:
        """
        중첩된 JSON 필드 값 가져오기 (점 표기법 지원)

        예시:
        - "status" -> data["status"]
        - "data.database.status" -> data["data"]["database"]["status"]
        """
        value = data
        for key in field_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                self.logger.debug(f"필드 '{field_path}'를 찾을 수 없음 (중단 위치: '{key}')")
                return None
        return value
