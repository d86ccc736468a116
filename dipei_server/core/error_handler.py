"""
统一错误处理模块
提供标准化的错误响应格式和错误处理中间件

主要功能：
- 统一的错误响应格式
- 自动异常捕获和日志记录
- 错误码到HTTP状态码的映射
"""

import logging
from typing import Dict, Any, Optional
from fastapi import Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from .exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


class ErrorResponse:
    """标准错误响应格式"""

    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }

    def to_json_response(self) -> JSONResponse:
        """转换为FastAPI JSONResponse"""
        return JSONResponse(
            status_code=self.http_status,
            content=jsonable_encoder(self.to_dict())
        )


class ErrorHandler:
    """全局错误处理器"""

    # 错误代码到HTTP状态码的映射
    ERROR_CODE_STATUS_MAP = {
        "INVALID_PARAMS": 400,
        "VALIDATION_ERROR": 422,
        "INTERNAL_ERROR": 500,
        "NOT_FOUND": 404,
        "BUSINESS_RULE_VIOLATION": 400,
        "CONCURRENCY_CONFLICT": 409,

        # 认证与权限
        "PHONE_EXISTS": 409,
        "INVALID_CREDENTIALS": 401,
        "TOKEN_INVALID": 401,
        "PERMISSION_DENIED": 403,
        "USER_BANNED": 403,
        "USER_NOT_FOUND": 404,
        "INVALID_SMS_CODE": 400,

        # 地陪
        "GUIDE_NOT_FOUND": 404,
        "INVALID_ID_NUMBER": 400,

        # 订单
        "ORDER_NOT_FOUND": 404,
        "INVALID_ORDER_STATUS": 400,
        "ALREADY_REFUNDED": 409,

        # 钱包
        "INSUFFICIENT_BALANCE": 400,
        "WITHDRAWAL_ALREADY_PROCESSED": 409,

        # 附件
        "FILE_TOO_LARGE": 413,
        "UNSUPPORTED_FILE": 400,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        """处理应用业务异常"""
        http_status = cls.ERROR_CODE_STATUS_MAP.get(error.error_code, 400)
        if http_status >= 500:
            logger.error("Application error %s: %s", error.error_code, error.message)

        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            details=error.details,
            http_status=http_status
        )

    @classmethod
    def handle_http_exception(cls, error: HTTPException) -> ErrorResponse:
        """处理FastAPI HTTP异常"""
        return ErrorResponse(
            error_code="HTTP_ERROR",
            message=str(error.detail),
            details={"status_code": error.status_code},
            http_status=error.status_code
        )

    @classmethod
    def handle_validation_error(cls, error: Exception) -> ErrorResponse:
        """处理Pydantic验证错误"""
        if hasattr(error, "errors"):
            errors = [
                {"loc": list(e.get("loc", [])), "msg": e.get("msg"), "type": e.get("type")}
                for e in error.errors()
            ]
        else:
            errors = str(error)
        message = "请求参数验证失败"
        if isinstance(errors, list) and errors:
            message = f"请求参数验证失败: {errors[0]['msg']}"
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message=message,
            details={"validation_errors": errors},
            http_status=422
        )

    @classmethod
    def handle_unknown_error(cls, error: Exception) -> ErrorResponse:
        """处理未知异常"""
        logger.exception("Unhandled error: %s", error)

        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="系统内部错误",
            details={"error_type": type(error).__name__},
            http_status=500
        )


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    """应用异常处理中间件"""
    error_response = ErrorHandler.handle_application_error(exc)
    return error_response.to_json_response()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTP异常处理中间件"""
    error_response = ErrorHandler.handle_http_exception(exc)
    return error_response.to_json_response()


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """验证异常处理中间件"""
    error_response = ErrorHandler.handle_validation_error(exc)
    return error_response.to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """通用异常处理中间件"""
    error_response = ErrorHandler.handle_unknown_error(exc)
    return error_response.to_json_response()


def create_success_response(data: Any = None, message: str = "操作成功") -> Dict[str, Any]:
    """创建标准成功响应"""
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = data

    return response


def create_paginated_response(items: list, total: int, page: int,
                              page_size: int, message: str = "查询成功") -> Dict[str, Any]:
    """创建分页响应"""
    return {
        "success": True,
        "message": message,
        "data": {
            "items": items,
            "pagination": {
                "total": total,
                "page": page,
                "page_size": page_size,
                "total_pages": (total + page_size - 1) // page_size
            }
        }
    }
