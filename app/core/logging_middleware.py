# app/core/logging_middleware.py
from fastapi import Request
from app.core.logger import logger
import time
import uuid

REQUEST_ID_HEADER = "X-Request-ID"

async def log_requests(request: Request, call_next):
    """요청/응답 로깅 (요청 ID 부여)"""

    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
    start_time = time.perf_counter()

    # 요청 처리 중 찍히는 모든 로그에 request_id 포함
    with logger.contextualize(request_id=request_id):
        logger.info(f"➡️  {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"❌ {request.method} {request.url.path} "
                f"- Error: {str(e)} "
                f"- Time: {process_time:.2f}ms"
            )
            logger.exception("Exception details:")
            raise

        process_time = (time.perf_counter() - start_time) * 1000  # ms
        logger.info(
            f"⬅️  {request.method} {request.url.path} "
            f"- Status: {response.status_code} "
            f"- Time: {process_time:.2f}ms"
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
