"""
API 模块 (Collector API Module)
==============================

FastAPI 实现的参考远端收集器：接收同步请求、服务端复核字段格式并保存，
提供分页过滤查询、单条记录增删改查、批量拉取与汇总统计接口。

运行:
    uvicorn app.api:app --port 3000
"""

import math
import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.backend.records import RecordStore
from app.backend.validation import (
    FormDataCreate,
    FormDataUpdate,
    ListQuery,
    build_validation_status,
    format_errors,
)
from formharvest.config import get_settings
from formharvest.ir import utc_now_iso
from formharvest.logger import get_logger

logger = get_logger(__name__)

VERSION = "1.0.0"

# Browser extensions, localhost and tunnel hosts may call the collector
ALLOWED_ORIGIN_REGEX = (
    r"^(chrome-extension|moz-extension|ms-browser-extension)://.*$"
    r"|^https?://localhost(:\d+)?$"
    r"|^https://[^/]*\.(ngrok-free\.app|ngrok\.io)$"
)


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


def _not_found(record_id: int) -> JSONResponse:
    return _error(404, "Form data not found", message=f"No form data found with ID {record_id}")


def create_app(records: Optional[RecordStore] = None) -> FastAPI:
    """
    构造收集器应用。

    参数:
        records: 可选的记录存储；为 None 时首次请求按配置 COLLECTOR_DB_PATH 打开
    """
    app = FastAPI(title="Form Data Collector", version=VERSION)
    app.state.records = records
    app.state.started_at = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=ALLOWED_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Length", "X-Total-Count"],
        max_age=86400,
    )

    def get_records() -> RecordStore:
        if app.state.records is None:
            app.state.records = RecordStore(get_settings().COLLECTOR_DB_PATH)
        return app.state.records

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Endpoint not found", message=f"The endpoint {request.url.path} does not exist")
        return _error(exc.status_code, str(exc.detail))

    @app.get("/")
    def root():
        return {
            "message": "Form Data API is running",
            "version": VERSION,
            "endpoints": {"health": "/api/health", "formData": "/api/form-data"},
        }

    # -- health --------------------------------------------------------------

    def _health_base() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": utc_now_iso(),
            "uptime": time.time() - app.state.started_at,
            "environment": os.getenv("ENVIRONMENT", "development"),
            "version": VERSION,
        }

    @app.get("/api/health")
    def health():
        try:
            current_time = get_records().ping()
        except Exception as e:
            logger.error("Health check failed: %s", e)
            return _error(503, "Database connection failed", status="unhealthy",
                          timestamp=utc_now_iso(), details=str(e))
        body = _health_base()
        body["database"] = {"status": "connected", "current_time": current_time}
        return body

    @app.get("/api/health/detailed")
    def health_detailed():
        try:
            start = time.time()
            current_time = get_records().ping()
            response_time_ms = int((time.time() - start) * 1000)
            summary = get_records().summary()
        except Exception as e:
            logger.error("Detailed health check failed: %s", e)
            return _error(503, "Health check failed", status="unhealthy",
                          timestamp=utc_now_iso(), details=str(e))
        body = _health_base()
        body["database"] = {
            "status": "connected",
            "response_time_ms": response_time_ms,
            "current_time": current_time,
            "stats": {
                "total_records": summary["total_records"],
                "records_last_24h": summary["records_last_24h"],
            },
        }
        return body

    # -- form data -----------------------------------------------------------

    @app.get("/api/form-data/all")
    def list_all():
        try:
            data = get_records().latest_per_identity()
        except Exception as e:
            logger.error("Error fetching all form data: %s", e)
            return _error(500, "Failed to fetch all form data", details=str(e))
        logger.info("%d records from database", len(data))
        return {"message": "All form data retrieved successfully", "count": len(data), "data": data}

    @app.get("/api/form-data/stats/summary")
    def stats_summary():
        try:
            return {"data": get_records().summary()}
        except Exception as e:
            logger.error("Error fetching summary stats: %s", e)
            return _error(500, "Failed to fetch summary statistics", details=str(e))

    @app.get("/api/form-data")
    def list_form_data(request: Request):
        try:
            query = ListQuery.model_validate(dict(request.query_params))
        except ValidationError as e:
            return _error(400, "Query validation failed", details=format_errors(e))
        try:
            data, total = get_records().list_records(**query.model_dump())
        except Exception as e:
            logger.error("Error fetching form data: %s", e)
            return _error(500, "Failed to fetch form data", details=str(e))
        return {
            "data": data,
            "pagination": {
                "page": query.page,
                "limit": query.limit,
                "total": total,
                "total_pages": math.ceil(total / query.limit),
                "has_next": query.page * query.limit < total,
                "has_prev": query.page > 1,
            },
        }

    @app.get("/api/form-data/{record_id}")
    def get_form_data(record_id: int):
        record = get_records().get(record_id)
        if record is None:
            return _not_found(record_id)
        return {"data": record}

    @app.post("/api/form-data", status_code=201)
    async def create_form_data(request: Request):
        try:
            body = await request.json()
        except Exception:
            return _error(400, "Invalid JSON body")
        try:
            form = FormDataCreate.model_validate(body)
        except ValidationError as e:
            logger.warning("Rejected form data: %s", e.error_count())
            return _error(400, "Validation failed", details=format_errors(e))

        data = form.present()
        try:
            record = get_records().create(data, build_validation_status(data))
        except Exception as e:
            logger.error("Error creating form data: %s", e)
            return _error(500, "Failed to create form data", details=str(e))
        return JSONResponse(status_code=201, content={"message": "Form data created successfully", "data": record})

    @app.put("/api/form-data/{record_id}")
    async def update_form_data(record_id: int, request: Request):
        try:
            body = await request.json()
        except Exception:
            return _error(400, "Invalid JSON body")
        try:
            form = FormDataUpdate.model_validate(body)
        except ValidationError as e:
            return _error(400, "Validation failed", details=format_errors(e))

        changes = form.present()
        records = get_records()
        if records.get(record_id) is None:
            return _not_found(record_id)
        if not changes:
            return _error(400, "No valid fields to update")

        try:
            record = records.update(record_id, changes, build_validation_status(changes))
        except Exception as e:
            logger.error("Error updating form data: %s", e)
            return _error(500, "Failed to update form data", details=str(e))
        if record is None:
            return _not_found(record_id)
        return {"message": "Form data updated successfully", "data": record}

    @app.delete("/api/form-data/{record_id}")
    def delete_form_data(record_id: int):
        try:
            deleted = get_records().delete(record_id)
        except Exception as e:
            logger.error("Error deleting form data: %s", e)
            return _error(500, "Failed to delete form data", details=str(e))
        if not deleted:
            return _not_found(record_id)
        return {"message": "Form data deleted successfully", "deleted_id": record_id}

    return app


app = create_app()
