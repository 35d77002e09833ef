"""
API 라우트 패키지

각 기능별 라우터 모듈:
- health: 헬스 체크
- status: 큐/체크포인트 현황
- webhooks: Shopify webhook 수신
- operations: 큐 수동 조작, 동기화 실행
- mirror: 로컬 미러 조회
"""
