# src/exception.py
from fastapi import HTTPException, status

NotFoundException = lambda detail="Not found": HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
BadRequestException = lambda detail="Bad request": HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
