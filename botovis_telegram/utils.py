from importlib import import_module
from typing import Any

CONVERSATION_PREFIX = 'telegram_'


def conversation_id_for(chat_id: int) -> str:
    """Agent conversation id of a Telegram chat."""
    return f'{CONVERSATION_PREFIX}{chat_id}'


def load_object(path: str) -> Any:
    """Import an object given as 'package.module:attribute'.

    Args:
        path: Module path and attribute name separated by a colon

    Returns:
        The imported attribute

    Raises:
        ValueError: If path is not in 'module:attribute' form
        ImportError: If the module or attribute cannot be found
    """
    module_name, sep, attr_path = path.partition(':')
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Expected 'module:attribute', got {path!r}")

    obj: Any = import_module(module_name)
    for attr in attr_path.split('.'):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise ImportError(f'{module_name} has no attribute {attr_path!r}') from e
    return obj
