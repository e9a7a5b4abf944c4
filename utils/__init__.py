import logging
import time
from functools import wraps


def format_error(operation: str, detail: str) -> str:
    """Formats a user-facing error as "Operation: detail"."""
    return f"{operation}: {detail}"


def to_error_message(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__
    return str(error)


def timeit(func):
    """装饰器，用于测量函数执行时间

    Args:
        func: 被装饰的函数

    Returns:
        wrapper: 包装后的函数
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()  # 记录开始时间
        result = func(*args, **kwargs)  # 执行原函数
        end_time = time.time()  # 记录结束时间
        logging.debug("%s took %.4fs", func.__name__, end_time - start_time)
        return result

    return wrapper
