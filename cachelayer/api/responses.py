import time
from typing import Any

from flask import jsonify


def _timestamp() -> int:
    return int(time.time() * 1000)


def success_response(data: Any, status: int = 200):
    return jsonify({"success": True, "data": data, "timestamp": _timestamp()}), status


def error_response(error: str, status: int):
    return jsonify({"success": False, "error": error, "timestamp": _timestamp()}), status
