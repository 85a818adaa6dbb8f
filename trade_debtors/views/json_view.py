"""
JSON View
Formats response envelopes
"""

from typing import Any, Dict, List, Optional

from ..utils.helpers import get_current_timestamp


class JsonView:
    """JSON response formatter"""

    @staticmethod
    def success(message: str = "", data: Any = None, **extra: Any) -> Dict:
        """Format success response; extra keys are appended after data"""
        response = {
            "success": True,
            "message": message,
            "data": data,
        }
        response.update(extra)
        return response

    @staticmethod
    def error(code: str, message: str, details: Optional[Any] = None) -> Dict:
        """Format error response"""
        response = {
            "success": False,
            "message": message,
            "errorCode": code,
            "timestamp": get_current_timestamp()
        }
        if details is not None:
            response["details"] = details
        return response

    @staticmethod
    def paginated(message: str, data: List, pagination: Dict) -> Dict:
        """Format paginated response"""
        return {
            "success": True,
            "message": message,
            "data": data,
            "pagination": pagination
        }
