# Base class for conditions the relationship layer reports to its caller
class SocialError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

# Referenced user, post or comment does not exist
class NotFound(SocialError):
    pass

# Actor lacks ownership or role for a mutating operation
class Forbidden(SocialError):
    pass

# Self-follow, unfollow without following, reply to a foreign post, bad content length...
class InvalidOperation(SocialError):
    pass

# Duplicate follow edge
class AlreadyExists(SocialError):
    pass
