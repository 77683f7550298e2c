"""Custom exceptions for the brushmap service"""

class BrushMapException(Exception):
    """Base exception for brushmap"""
    status_code = 400

class ValidationError(BrushMapException):
    """Raised when input validation fails"""
    pass

class GeometryOperationError(BrushMapException):
    """Raised when a boolean geometry operation cannot be applied, even after repair"""
    status_code = 422

class SessionNotFoundError(BrushMapException):
    """Raised when an editing session id is unknown or expired"""
    status_code = 404

class TerritoryNotFoundError(BrushMapException):
    """Raised when a territory row does not exist"""
    status_code = 404

class PersistenceError(BrushMapException):
    """Raised when the boundary store cannot be read or written"""
    status_code = 503

class ConfigurationError(BrushMapException):
    """Raised when configuration is invalid"""
    status_code = 500
