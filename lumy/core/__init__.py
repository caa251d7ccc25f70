from .errors import ErrorKind, Failure, LumyError

__all__ = ["ErrorKind", "Failure", "LumyError"]
