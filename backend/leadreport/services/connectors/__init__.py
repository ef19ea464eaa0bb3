from .apollo import ApolloConnector
from .base import BaseConnector, ConnectorResult
from .news import NewsConnector

__all__ = ["ApolloConnector", "BaseConnector", "ConnectorResult", "NewsConnector"]
