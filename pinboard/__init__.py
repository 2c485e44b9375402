"""
Pinboard 서버 패키지 초기화 모듈.

서버 구성 요소는 다음 하위 모듈에 정리되어 있다.
- protocol: 텍스트 line 프레이밍, 명령 파싱, 응답 포맷
- board: 노트/핀 상태 및 배치 규칙 검증
- hub: 세션 관리 및 명령 라우팅
- main: TCP 서버 진입점
"""

__all__ = [
    "board",
    "hub",
    "protocol",
]
