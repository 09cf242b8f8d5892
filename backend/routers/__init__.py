from .requests import router as requests_router
from .priority import router as priority_router
from .search import router as search_router
