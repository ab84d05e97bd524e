from fastapi import HTTPException


class NotFoundError(HTTPException):
    """Referenced event, invite or user does not exist"""

    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class ForbiddenError(HTTPException):
    """Acting user failed an ownership or permission check"""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=403, detail=detail)


class BadRequestError(HTTPException):
    """Request is well-formed but violates a domain rule"""

    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=400, detail=detail)
