"""
Web 진입점

실행 방법:
    python -m web
"""

import sys

import uvicorn

from core.config.loader import ConfigLoadError, get_settings

if __name__ == "__main__":
    try:
        web_config = get_settings().config.web
    except ConfigLoadError as e:
        print(f"설정 로드 실패: {e}", file=sys.stderr)
        sys.exit(1)

    uvicorn.run(
        "web.app:app",
        host=web_config.host,
        port=web_config.port,
        reload=False,
    )
