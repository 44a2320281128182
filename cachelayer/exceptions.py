class CacheLayerError(Exception):
    """Base class for all cache-layer exceptions."""
    pass

class ConfigError(CacheLayerError):
    """Raised when the configuration is missing or out of range."""
    pass

class ValidationError(CacheLayerError):
    """Raised when a request key or payload fails validation."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class RateLimitExceededError(CacheLayerError):
    """Raised when a client sends more requests than its window allows."""
    def __init__(self, client_id: str, retry_after: int):
        super().__init__(f"Rate limit exceeded for client '{client_id}'")
        self.client_id = client_id
        self.retry_after = retry_after
