class FeedException(Exception):
    """Base exception for all activity-feed errors."""
    pass

class RateLimitExceededException(FeedException):
    """Raised when the GitHub REST rate limit is exhausted."""
    def __init__(self, reset_at: str, message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        super().__init__(f"{message} Resets at: {reset_at}")

class GitHubApiException(FeedException):
    """Raised when GitHub answers with an unexpected status."""
    def __init__(self, status: int, url: str):
        self.status = status
        self.url = url
        super().__init__(f"GitHub API returned HTTP {status} for {url}")

class ReviewEndpointException(FeedException):
    """Raised when the chat-completion endpoint fails or times out."""
    pass

class ConfigurationException(FeedException):
    """Raised when the environment does not describe a valid configuration."""
    pass
