from . import utils
from . import composition
from . import blur
from . import cache

__version__ = "1.0.0"

__all__ = [
    "utils",
    "composition",
    "blur",
    "cache",
]
