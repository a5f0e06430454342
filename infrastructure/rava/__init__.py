from .historicos_client import RavaHistoricosClient
from .views_client import RavaViewsClient

__all__ = ["RavaHistoricosClient", "RavaViewsClient"]
